"""Shared pytest fixtures."""

from pathlib import Path

import pytest
import yaml
from litestar.testing import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from oohunt.auth.identity import SessionUser
from oohunt.config import CacheConfig, DatabaseConfig, FavoritesConfig, Settings
from oohunt.db.base import Base
from oohunt.lib.hooks import hooks

import oohunt.db.models  # noqa: F401  registers all models on Base

USER_HEADER = "x-test-user"
ROLE_HEADER = "x-test-role"


@pytest.fixture
def temp_app_yaml(tmp_path):
    """Create a temporary app.yaml file for testing."""
    config_path = tmp_path / "app.yaml"

    def _create_config(config: dict) -> Path:
        with open(config_path, "w") as f:
            yaml.safe_dump(config, f)
        return config_path

    return _create_config


@pytest.fixture
def clean_hooks():
    """Save and restore hooks state around a test."""
    original_filters = {name: list(handlers) for name, handlers in hooks._filters.items()}
    original_actions = {name: list(handlers) for name, handlers in hooks._actions.items()}
    yield
    hooks._filters.clear()
    hooks._filters.update(original_filters)
    hooks._actions.clear()
    hooks._actions.update(original_actions)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(engine):
    """A real session against a throwaway SQLite database."""
    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    async with session_maker() as session:
        yield session


@pytest.fixture
def settings(tmp_path):
    return Settings(
        secret_key="test-secret-key",
        db=DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'app.db'}"),
        favorites=FavoritesConfig(data_dir=str(tmp_path / "favorites")),
        cache=CacheConfig(enabled=True, default_expiration=60),
    )


async def header_session_lookup(connection):
    """Test session lookup: the signed-in user comes from request headers."""
    user_id = connection.headers.get(USER_HEADER)
    if not user_id:
        return None
    return SessionUser(id=user_id, role=connection.headers.get(ROLE_HEADER, "user"))


@pytest.fixture
def app(settings, clean_hooks):
    from oohunt.asgi import create_app

    return create_app(settings, session_lookup=header_session_lookup)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def admin_headers():
    return {USER_HEADER: "admin-1", ROLE_HEADER: "admin"}


@pytest.fixture
def user_headers():
    return {USER_HEADER: "user-1", ROLE_HEADER: "user"}
