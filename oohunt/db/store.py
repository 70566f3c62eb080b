"""Database handle built on advanced-alchemy's Litestar integration.

The application owns exactly one ``DocumentStore``. Its ``alchemy_config`` is
handed to ``SQLAlchemyPlugin``, which injects a per-request ``db_session``.
Work outside a request (CLI commands, hook handlers, health checks) goes
through ``init()``, ``session()`` and ``close()`` on the store itself.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Callable, cast

from advanced_alchemy.config import EngineConfig
from advanced_alchemy.extensions.litestar import AsyncSessionConfig, SQLAlchemyAsyncConfig
from advanced_alchemy.extensions.litestar._utils import (
    delete_aa_scope_state,
    get_aa_scope_state,
    set_aa_scope_state,
)
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

import oohunt.db.models  # noqa: F401  registers the tables on Base.metadata
from oohunt.config import DatabaseConfig
from oohunt.db.base import Base
from oohunt.lib import observability

if TYPE_CHECKING:
    from litestar.datastructures import State
    from litestar.types import Scope

logger = logging.getLogger(__name__)

SESSION_DEPENDENCY_KEY = "db_session"


class StoreNotInitialized(RuntimeError):
    pass


class CancellationSafeAlchemyConfig(SQLAlchemyAsyncConfig):
    """Async config whose request session is closed when the request is cancelled.

    The stock cleanup runs from ``before_send_handler`` on the response
    events. A client disconnect or timeout raises ``CancelledError`` before
    those fire, so the session would keep its pooled connection.
    """

    async def provide_session(
        self,
        state: "State",
        scope: "Scope",
    ) -> AsyncGenerator[AsyncSession, None]:
        session = cast("AsyncSession | None", get_aa_scope_state(scope, self.session_scope_key))
        if session is None:
            session_maker = cast("Callable[[], AsyncSession]", state[self.session_maker_app_state_key])
            session = session_maker()
            set_aa_scope_state(scope, self.session_scope_key, session)

        try:
            yield session
        except asyncio.CancelledError:
            await session.close()
            delete_aa_scope_state(scope, self.session_scope_key)
            raise


def build_alchemy_config(config: DatabaseConfig) -> CancellationSafeAlchemyConfig:
    """Plugin config for ``config``. SQLite gets no pool sizing."""
    if config.url.startswith("sqlite"):
        engine_config = EngineConfig(echo=config.echo)
    else:
        engine_config = EngineConfig(
            pool_size=config.pool_size,
            max_overflow=config.pool_overflow,
            pool_timeout=config.pool_timeout,
            pool_pre_ping=True,
            echo=config.echo,
        )

    # Tables are created by DocumentStore.init() so the CLI and the app share one path
    return CancellationSafeAlchemyConfig(
        connection_string=config.url,
        metadata=Base.metadata,
        create_all=False,
        session_config=AsyncSessionConfig(expire_on_commit=False),
        engine_config=engine_config,
        session_dependency_key=SESSION_DEPENDENCY_KEY,
    )


class DocumentStore:
    def __init__(self, config: DatabaseConfig) -> None:
        self.config = config
        self.alchemy_config = build_alchemy_config(config)
        self._engine: AsyncEngine | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise StoreNotInitialized("DocumentStore.init() has not been called")
        return self._engine

    async def init(self) -> None:
        """Create the engine and any missing tables. Calling it twice is a no-op."""
        if self._engine is not None:
            return

        # Shared with SQLAlchemyPlugin: get_engine() caches the instance
        self._engine = self.alchemy_config.get_engine()
        observability.instrument_sqlalchemy(self._engine)

        if self.config.create_all:
            await self.create_all()

        logger.info("Document store ready (%s)", self._engine.url.render_as_string(hide_password=True))

    async def create_all(self) -> None:
        """Create any missing tables for the registered models."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self.alchemy_config.engine_instance = None
        self.alchemy_config.session_maker = None
        logger.info("Document store closed")

    async def ping(self) -> bool:
        """Round-trip a trivial query. Raises on connection failure."""
        async with self.session() as session:
            await session.execute(text("SELECT 1"))
        return True

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session for work outside a request (CLI, hook handlers)."""
        if self._engine is None:
            raise StoreNotInitialized("DocumentStore.init() has not been called")
        async with self.alchemy_config.get_session() as session:
            yield session
