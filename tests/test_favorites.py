"""Tests for the anonymous and signed-in favorites stores."""

import gc
import json
import os
from datetime import UTC, datetime

import pytest

from oohunt.db.services.favorites import (
    DatabaseFavoritesStore,
    FavoritesStore,
    FileFavoritesStore,
    OwnerKind,
    get_favorites_store,
    normalize_product_ids,
    register_cleanup_hook,
    validate_client_id,
)
from oohunt.lib.exceptions import UnauthorizedError, ValidationError
from oohunt.lib.hooks import USER_DELETED, hooks


class TestValidation:
    def test_client_id_prefix_required(self):
        assert validate_client_id("client_abc-123") == "client_abc-123"
        with pytest.raises(UnauthorizedError):
            validate_client_id("abc")

    @pytest.mark.parametrize("client_id", [None, "", "client_", "client_../etc", "client_a/b"])
    def test_rejects_unsafe_client_ids(self, client_id):
        with pytest.raises(UnauthorizedError):
            validate_client_id(client_id)

    def test_custom_prefix(self):
        assert validate_client_id("anon.x1", prefix="anon.") == "anon.x1"

    def test_normalize_dedupes_in_order(self):
        assert normalize_product_ids(["b", "a", "b", "", 3, "c"]) == ["b", "a", "c"]

    def test_normalize_requires_list(self):
        with pytest.raises(ValidationError):
            normalize_product_ids("a,b")


class TestFileFavoritesStore:
    @pytest.mark.asyncio
    async def test_add_is_idempotent(self, tmp_path):
        store = FileFavoritesStore(tmp_path)

        await store.add("client_1", "p1")
        await store.add("client_1", "p1")

        assert [entry.product_id for entry in await store.list("client_1")] == ["p1"]

    @pytest.mark.asyncio
    async def test_remove_missing_is_a_no_op(self, tmp_path):
        store = FileFavoritesStore(tmp_path)
        await store.add("client_1", "p1")

        await store.remove("client_1", "p2")
        await store.remove("client_1", "p1")

        assert await store.list("client_1") == []

    @pytest.mark.asyncio
    async def test_owners_are_isolated(self, tmp_path):
        store = FileFavoritesStore(tmp_path)
        await store.add("client_1", "p1")

        assert await store.list("client_2") == []

    @pytest.mark.asyncio
    async def test_list_most_recent_first(self, tmp_path):
        store = FileFavoritesStore(tmp_path)
        await store.add("client_1", "first")
        await store.add("client_1", "second")

        assert [entry.product_id for entry in await store.list("client_1")][0] == "second"

    @pytest.mark.asyncio
    async def test_sync_replaces(self, tmp_path):
        store = FileFavoritesStore(tmp_path)
        await store.add("client_1", "old")

        entries = await store.sync("client_1", ["a", "b", "a"])

        assert [entry.product_id for entry in entries] == ["a", "b"]
        assert {entry.product_id for entry in await store.list("client_1")} == {"a", "b"}

    @pytest.mark.asyncio
    async def test_reads_legacy_string_entries(self, tmp_path):
        (tmp_path / "client_1.json").write_text(json.dumps(["p1", "p2"]))
        store = FileFavoritesStore(tmp_path)

        assert {entry.product_id for entry in await store.list("client_1")} == {"p1", "p2"}

    @pytest.mark.asyncio
    async def test_corrupt_file_reads_as_empty(self, tmp_path):
        (tmp_path / "client_1.json").write_text("{not json")
        store = FileFavoritesStore(tmp_path)

        assert await store.list("client_1") == []

    @pytest.mark.asyncio
    async def test_blank_product_id_rejected(self, tmp_path):
        store = FileFavoritesStore(tmp_path)

        with pytest.raises(ValidationError):
            await store.add("client_1", "  ")

    @pytest.mark.asyncio
    async def test_clear(self, tmp_path):
        store = FileFavoritesStore(tmp_path)
        await store.add("client_1", "p1")

        await store.clear("client_1")

        assert not (tmp_path / "client_1.json").exists()

    @pytest.mark.asyncio
    async def test_bad_created_at_falls_back_to_file_time(self, tmp_path):
        path = tmp_path / "client_1.json"
        path.write_text(json.dumps([{"productId": "p1", "createdAt": "yesterday"}]))
        os.utime(path, (1_700_000_000, 1_700_000_000))
        store = FileFavoritesStore(tmp_path)

        (entry,) = await store.list("client_1")

        assert entry.created_at == datetime.fromtimestamp(1_700_000_000, UTC)

    @pytest.mark.asyncio
    async def test_naive_created_at_is_read_as_utc(self, tmp_path):
        (tmp_path / "client_1.json").write_text(
            json.dumps(
                [
                    {"productId": "naive", "createdAt": "2024-05-01T12:00:00"},
                    {"productId": "aware", "createdAt": "2024-04-01T12:00:00+00:00"},
                ]
            )
        )
        store = FileFavoritesStore(tmp_path)

        entries = await store.list("client_1")

        assert [entry.product_id for entry in entries] == ["naive", "aware"]
        assert entries[0].created_at == datetime(2024, 5, 1, 12, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_undecodable_file_reads_as_empty(self, tmp_path):
        (tmp_path / "client_1.json").write_bytes(b"\xff\xfe\x00[")
        store = FileFavoritesStore(tmp_path)

        assert await store.list("client_1") == []

        await store.add("client_1", "p1")
        assert [entry.product_id for entry in await store.list("client_1")] == ["p1"]

    @pytest.mark.asyncio
    async def test_locks_are_released_after_use(self, tmp_path):
        store = FileFavoritesStore(tmp_path)
        for n in range(5):
            await store.add(f"client_{n}", "p1")

        gc.collect()

        assert len(store._locks) == 0

    def test_satisfies_store_protocol(self, tmp_path):
        assert isinstance(FileFavoritesStore(tmp_path), FavoritesStore)


class TestDatabaseFavoritesStore:
    @pytest.mark.asyncio
    async def test_add_list_remove(self, db_session):
        store = DatabaseFavoritesStore(db_session)

        await store.add("user-1", "p1")
        await store.add("user-1", "p1")
        await store.add("user-2", "p9")

        assert [entry.product_id for entry in await store.list("user-1")] == ["p1"]

        await store.remove("user-1", "p1")
        assert await store.list("user-1") == []
        assert len(await store.list("user-2")) == 1

    @pytest.mark.asyncio
    async def test_sync(self, db_session):
        store = DatabaseFavoritesStore(db_session)
        await store.add("user-1", "old")

        await store.sync("user-1", ["a", "b"])

        assert {entry.product_id for entry in await store.list("user-1")} == {"a", "b"}

    @pytest.mark.asyncio
    async def test_payload_shape(self, db_session):
        store = DatabaseFavoritesStore(db_session)
        await store.add("user-1", "p1")

        (entry,) = await store.list("user-1")

        assert set(entry.to_payload()) == {"productId", "createdAt"}


class TestStoreSelection:
    def test_anonymous_requires_shared_store(self, tmp_path):
        with pytest.raises(ValueError):
            get_favorites_store(OwnerKind.ANONYMOUS)

        store = FileFavoritesStore(tmp_path)
        assert get_favorites_store(OwnerKind.ANONYMOUS, anonymous_store=store) is store

    def test_user_store_wraps_session(self, db_session):
        store = get_favorites_store(OwnerKind.USER, db_session=db_session)

        assert isinstance(store, DatabaseFavoritesStore)
        assert isinstance(store, FavoritesStore)


class TestCleanupHook:
    @pytest.mark.asyncio
    async def test_user_deleted_clears_favorites(self, settings, clean_hooks):
        from oohunt.db.store import DocumentStore

        store = DocumentStore(settings.db)
        await store.init()
        try:
            async with store.session() as session:
                await DatabaseFavoritesStore(session).add("user-1", "p1")

            register_cleanup_hook(store)
            register_cleanup_hook(store)
            await hooks.do_action(USER_DELETED, "user-1")

            async with store.session() as session:
                assert await DatabaseFavoritesStore(session).list("user-1") == []
        finally:
            await store.close()
