"""Favorite products, for anonymous visitors and for signed-in users.

Both owner kinds share one interface. Anonymous owners are identified by a
client id sent in the ``x-client-id`` header and their favorites live in one
JSON file per client; signed-in users are stored in the ``favorites`` table.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import weakref
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from oohunt.db.models import Favorite
from oohunt.lib.exceptions import UnauthorizedError, ValidationError
from oohunt.lib.hooks import USER_DELETED, HookRegistry, hooks

if TYPE_CHECKING:
    from oohunt.db.store import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_ID_PREFIX = "client_"
INVALID_PRODUCT_ID_MESSAGE = "Invalid product ID"


class OwnerKind(StrEnum):
    ANONYMOUS = "anonymous"
    USER = "user"


@dataclass(frozen=True)
class FavoriteEntry:
    product_id: str
    created_at: datetime

    def to_payload(self) -> dict[str, str]:
        return {"productId": self.product_id, "createdAt": self.created_at.isoformat()}


@runtime_checkable
class FavoritesStore(Protocol):
    async def add(self, owner_id: str, product_id: str) -> None: ...

    async def remove(self, owner_id: str, product_id: str) -> None: ...

    async def list(self, owner_id: str) -> list[FavoriteEntry]: ...

    async def sync(self, owner_id: str, product_ids: Sequence[str]) -> list[FavoriteEntry]: ...

    async def clear(self, owner_id: str) -> None: ...


def validate_product_id(product_id: Any) -> str:
    if not isinstance(product_id, str) or not product_id.strip():
        raise ValidationError(INVALID_PRODUCT_ID_MESSAGE)
    return product_id


def normalize_product_ids(product_ids: Any) -> list[str]:
    """De-duplicated non-blank string ids in first-seen order."""
    if not isinstance(product_ids, list):
        raise ValidationError("productIds must be a list")
    seen: dict[str, None] = {}
    for product_id in product_ids:
        if isinstance(product_id, str) and product_id.strip():
            seen.setdefault(product_id, None)
    return list(seen)


def validate_client_id(client_id: str | None, prefix: str = DEFAULT_CLIENT_ID_PREFIX) -> str:
    """Return the client id if it is usable as an anonymous owner key.

    Valid ids start with ``prefix`` followed by letters, digits, ``_`` or
    ``-`` only, which keeps them safe as file names.

    Raises:
        UnauthorizedError: the id is missing or malformed
    """
    pattern = re.compile(rf"{re.escape(prefix)}[A-Za-z0-9_-]+")
    if not client_id or not pattern.fullmatch(client_id):
        raise UnauthorizedError("A valid client id is required")
    return client_id


def _parse_created_at(raw: Any, fallback: datetime) -> datetime:
    """Aware timestamp for a stored ``createdAt``; naive values are taken as UTC."""
    if not isinstance(raw, str):
        return fallback
    try:
        created_at = datetime.fromisoformat(raw)
    except ValueError:
        return fallback
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    return created_at


def _most_recent_first(entries: list[FavoriteEntry]) -> list[FavoriteEntry]:
    return sorted(entries, key=lambda entry: entry.created_at, reverse=True)


class FileFavoritesStore:
    """Anonymous favorites, one JSON file per client id."""

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    async def add(self, owner_id: str, product_id: str) -> None:
        product_id = validate_product_id(product_id)
        async with self._lock(owner_id):
            entries = await self._read(owner_id)
            if any(entry.product_id == product_id for entry in entries):
                return
            entries.append(FavoriteEntry(product_id, datetime.now(UTC)))
            await self._write(owner_id, entries)

    async def remove(self, owner_id: str, product_id: str) -> None:
        product_id = validate_product_id(product_id)
        async with self._lock(owner_id):
            entries = await self._read(owner_id)
            remaining = [entry for entry in entries if entry.product_id != product_id]
            if len(remaining) != len(entries):
                await self._write(owner_id, remaining)

    async def list(self, owner_id: str) -> list[FavoriteEntry]:
        return _most_recent_first(await self._read(owner_id))

    async def sync(self, owner_id: str, product_ids: Sequence[str]) -> list[FavoriteEntry]:
        ids = normalize_product_ids(product_ids)
        now = datetime.now(UTC)
        entries = [FavoriteEntry(product_id, now) for product_id in ids]
        async with self._lock(owner_id):
            await self._write(owner_id, entries)
        return entries

    async def clear(self, owner_id: str) -> None:
        async with self._lock(owner_id):
            await asyncio.to_thread(self._path(owner_id).unlink, missing_ok=True)

    # -- internal helpers --

    def _lock(self, owner_id: str) -> asyncio.Lock:
        lock = self._locks.get(owner_id)
        if lock is None:
            lock = self._locks[owner_id] = asyncio.Lock()
        return lock

    def _path(self, owner_id: str) -> Path:
        return self._data_dir / f"{owner_id}.json"

    async def _read(self, owner_id: str) -> list[FavoriteEntry]:
        return await asyncio.to_thread(self._read_file, self._path(owner_id))

    async def _write(self, owner_id: str, entries: list[FavoriteEntry]) -> None:
        await asyncio.to_thread(self._write_file, self._path(owner_id), entries)

    @staticmethod
    def _read_file(path: Path) -> list[FavoriteEntry]:
        if not path.exists():
            return []
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (ValueError, UnicodeDecodeError):
            logger.warning("Ignoring unreadable favorites file %s", path, exc_info=True)
            return []
        if not isinstance(raw, list):
            return []

        entries = []
        mtime = datetime.fromtimestamp(path.stat().st_mtime, UTC)
        for item in raw:
            # Older files hold bare id strings
            if isinstance(item, str) and item.strip():
                entries.append(FavoriteEntry(item, mtime))
            elif isinstance(item, dict) and isinstance(item.get("productId"), str):
                entries.append(FavoriteEntry(item["productId"], _parse_created_at(item.get("createdAt"), mtime)))
        return entries

    @staticmethod
    def _write_file(path: Path, entries: list[FavoriteEntry]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps([entry.to_payload() for entry in entries]), encoding="utf-8")
        tmp.replace(path)


class DatabaseFavoritesStore:
    """Signed-in user favorites in the ``favorites`` table."""

    def __init__(self, db_session: AsyncSession) -> None:
        self.db_session = db_session

    async def add(self, owner_id: str, product_id: str) -> None:
        product_id = validate_product_id(product_id)
        existing = await self._get(owner_id, product_id)
        if existing is not None:
            existing.updated_at = datetime.now(UTC)
            await self.db_session.commit()
            return

        self.db_session.add(Favorite(user_id=owner_id, product_id=product_id))
        try:
            await self.db_session.commit()
        except IntegrityError:
            # A concurrent add for the same pair already landed
            await self.db_session.rollback()

    async def remove(self, owner_id: str, product_id: str) -> None:
        product_id = validate_product_id(product_id)
        await self.db_session.execute(
            delete(Favorite).where(Favorite.user_id == owner_id, Favorite.product_id == product_id)
        )
        await self.db_session.commit()

    async def list(self, owner_id: str) -> list[FavoriteEntry]:
        result = await self.db_session.execute(
            select(Favorite).where(Favorite.user_id == owner_id).order_by(Favorite.created_at.desc())
        )
        return [FavoriteEntry(favorite.product_id, favorite.created_at) for favorite in result.scalars()]

    async def sync(self, owner_id: str, product_ids: Sequence[str]) -> list[FavoriteEntry]:
        ids = normalize_product_ids(product_ids)
        await self.db_session.execute(delete(Favorite).where(Favorite.user_id == owner_id))
        favorites = [Favorite(user_id=owner_id, product_id=product_id) for product_id in ids]
        self.db_session.add_all(favorites)
        await self.db_session.commit()
        return [FavoriteEntry(favorite.product_id, favorite.created_at) for favorite in favorites]

    async def clear(self, owner_id: str) -> None:
        await self.db_session.execute(delete(Favorite).where(Favorite.user_id == owner_id))
        await self.db_session.commit()

    async def _get(self, owner_id: str, product_id: str) -> Favorite | None:
        result = await self.db_session.execute(
            select(Favorite).where(Favorite.user_id == owner_id, Favorite.product_id == product_id)
        )
        return result.scalar_one_or_none()


def get_favorites_store(
    kind: OwnerKind,
    *,
    anonymous_store: FileFavoritesStore | None = None,
    db_session: AsyncSession | None = None,
) -> FavoritesStore:
    """Pick the store implementation for an owner kind.

    The file store is shared process-wide so its per-client locks serialize
    concurrent writes; the database store wraps the request session.
    """
    if kind is OwnerKind.ANONYMOUS:
        if anonymous_store is None:
            raise ValueError("anonymous_store is required for anonymous favorites")
        return anonymous_store
    if db_session is None:
        raise ValueError("db_session is required for user favorites")
    return DatabaseFavoritesStore(db_session)


_user_deleted_handler = None


def register_cleanup_hook(store: DocumentStore, registry: HookRegistry = hooks) -> None:
    """Clear a user's favorites when the account system reports the user deleted."""
    global _user_deleted_handler

    async def clear_deleted_user_favorites(user_id: Any, **kwargs: Any) -> None:
        async with store.session() as db_session:
            await DatabaseFavoritesStore(db_session).clear(str(user_id))
        logger.info("Cleared favorites for deleted user %s", user_id)

    if _user_deleted_handler is not None:
        registry.remove_action(USER_DELETED, _user_deleted_handler)
    _user_deleted_handler = clear_deleted_user_favorites
    registry.add_action(USER_DELETED, clear_deleted_user_favorites)
