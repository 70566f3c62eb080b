"""Tests for the database handle and its Litestar plugin config."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from oohunt.config import DatabaseConfig
from oohunt.db.base import Base
from oohunt.db.store import (
    SESSION_DEPENDENCY_KEY,
    CancellationSafeAlchemyConfig,
    DocumentStore,
    StoreNotInitialized,
    build_alchemy_config,
)


class TestAlchemyConfig:
    def test_sqlite_has_no_pool_sizing(self, tmp_path):
        config = build_alchemy_config(DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'a.db'}"))

        assert isinstance(config, CancellationSafeAlchemyConfig)
        assert config.session_dependency_key == SESSION_DEPENDENCY_KEY
        assert config.metadata is Base.metadata
        assert config.session_config.expire_on_commit is False
        assert "pool_size" not in config.engine_config_dict

    def test_server_database_gets_pool_settings(self):
        config = build_alchemy_config(
            DatabaseConfig(url="postgresql+asyncpg://u:p@db/oohunt", pool_size=7, pool_overflow=3, pool_timeout=9)
        )

        assert config.engine_config.pool_size == 7
        assert config.engine_config.max_overflow == 3
        assert config.engine_config.pool_timeout == 9
        assert config.engine_config.pool_pre_ping is True


class TestDocumentStore:
    @pytest.mark.asyncio
    async def test_session_before_init_raises(self, settings):
        store = DocumentStore(settings.db)

        with pytest.raises(StoreNotInitialized):
            async with store.session():
                pass

    @pytest.mark.asyncio
    async def test_init_is_idempotent_and_close_resets(self, settings):
        store = DocumentStore(settings.db)

        await store.init()
        engine = store.engine
        await store.init()
        assert store.engine is engine
        assert await store.ping() is True

        await store.close()

        with pytest.raises(StoreNotInitialized):
            store.engine
        assert store.alchemy_config.engine_instance is None


class TestCancellationSafeSession:
    @pytest.mark.asyncio
    async def test_cancelled_request_closes_session(self, settings):
        config = DocumentStore(settings.db).alchemy_config
        session = MagicMock()
        session.close = AsyncMock()
        state = {config.session_maker_app_state_key: lambda: session}
        scope = {"type": "http"}

        provider = config.provide_session(state, scope)
        assert await provider.__anext__() is session

        with pytest.raises(asyncio.CancelledError):
            await provider.athrow(asyncio.CancelledError())

        session.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_session_is_reused_within_a_request(self, settings):
        config = DocumentStore(settings.db).alchemy_config
        makes = []
        state = {config.session_maker_app_state_key: lambda: makes.append(1) or MagicMock()}
        scope = {"type": "http"}

        first = await config.provide_session(state, scope).__anext__()
        second = await config.provide_session(state, scope).__anext__()

        assert first is second
        assert makes == [1]
