"""Favorites API.

Anonymous visitors identify themselves with an ``x-client-id`` header and
get file-backed favorites; signed-in users get database-backed favorites.
Both speak the ``{code, message, data}`` envelope.
"""

from typing import Annotated, Any

from litestar import Controller, Request, delete, get, post
from litestar.datastructures import State
from litestar.di import Provide
from litestar.params import Parameter
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from oohunt.auth.guards import auth_guard
from oohunt.auth.identity import get_session_user
from oohunt.db.services.favorites import (
    FavoriteEntry,
    FavoritesStore,
    OwnerKind,
    get_favorites_store,
    validate_client_id,
)
from oohunt.lib.exceptions import CODE_ENVELOPE, UnauthorizedError, ValidationError
from oohunt.lib.responses import coded

CODE_OPT = {"envelope": CODE_ENVELOPE}


def _entries(entries: list[FavoriteEntry]) -> list[dict[str, str]]:
    return [entry.to_payload() for entry in entries]


def _body_field(data: Any, key: str) -> Any:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data.get(key)


async def provide_client_id(
    state: State,
    x_client_id: Annotated[str | None, Parameter(header="x-client-id")] = None,
) -> str:
    return validate_client_id(x_client_id, state.settings.favorites.client_id_prefix)


def provide_anonymous_store(state: State) -> FavoritesStore:
    return get_favorites_store(OwnerKind.ANONYMOUS, anonymous_store=state.anonymous_favorites)


class AnonymousFavoritesController(Controller):
    path = "/api/user/favorites"
    dependencies = {
        "client_id": Provide(provide_client_id),
        "store": Provide(provide_anonymous_store, sync_to_thread=False),
    }

    @get("/", opt=CODE_OPT)
    async def list_favorites(self, client_id: str, store: FavoritesStore) -> dict[str, Any]:
        return coded(_entries(await store.list(client_id)))

    @post("/sync", opt=CODE_OPT, status_code=HTTP_200_OK)
    async def sync_favorites(self, client_id: str, store: FavoritesStore, data: dict[str, Any]) -> dict[str, Any]:
        """Replace the client's favorites with ``productIds``."""
        entries = await store.sync(client_id, _body_field(data, "productIds"))
        return coded(_entries(entries), message="Favorites synced")

    @post("/{product_id:str}", opt=CODE_OPT, status_code=HTTP_200_OK)
    async def add_favorite(self, client_id: str, store: FavoritesStore, product_id: str) -> dict[str, Any]:
        await store.add(client_id, product_id)
        return coded(message="Added to favorites")

    @delete("/{product_id:str}", opt=CODE_OPT, status_code=HTTP_200_OK)
    async def remove_favorite(self, client_id: str, store: FavoritesStore, product_id: str) -> dict[str, Any]:
        await store.remove(client_id, product_id)
        return coded(message="Removed from favorites")


async def provide_user_id(request: Request) -> str:
    user = await get_session_user(request)
    if user is None:
        raise UnauthorizedError("Authentication required")
    return user.id


def provide_user_store(db_session: AsyncSession) -> FavoritesStore:
    return get_favorites_store(OwnerKind.USER, db_session=db_session)


class UserFavoritesController(Controller):
    path = "/api/favorites"
    guards = [auth_guard]
    dependencies = {
        "user_id": Provide(provide_user_id),
        "store": Provide(provide_user_store, sync_to_thread=False),
    }

    @get("/", opt=CODE_OPT)
    async def list_favorites(self, user_id: str, store: FavoritesStore) -> dict[str, Any]:
        return coded(_entries(await store.list(user_id)))

    @post("/", opt=CODE_OPT, status_code=HTTP_200_OK)
    async def add_favorite(self, user_id: str, store: FavoritesStore, data: dict[str, Any]) -> dict[str, Any]:
        await store.add(user_id, _body_field(data, "productId"))
        return coded(message="Added to favorites")

    @delete("/", opt=CODE_OPT, status_code=HTTP_200_OK)
    async def remove_favorite(self, user_id: str, store: FavoritesStore, data: dict[str, Any]) -> dict[str, Any]:
        await store.remove(user_id, _body_field(data, "productId"))
        return coded(message="Removed from favorites")

    @post("/sync", opt=CODE_OPT, status_code=HTTP_200_OK)
    async def sync_favorites(self, user_id: str, store: FavoritesStore, data: dict[str, Any]) -> dict[str, Any]:
        entries = await store.sync(user_id, _body_field(data, "productIds"))
        return coded(_entries(entries), message="Favorites synced")
