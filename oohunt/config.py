import os
import re
from functools import lru_cache
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env early so its values are visible to YAML interpolation
_env_file = Path(__file__).parent.parent / ".env"
load_dotenv(_env_file)

# Pattern to match $VAR_NAME environment variable references
ENV_VAR_PATTERN = re.compile(r"\$([A-Z_][A-Z0-9_]*)")

CONFIG_PATH_ENV = "OOHUNT_CONFIG"


def interpolate_env_vars(value):
    """Recursively replace $VAR_NAME with os.environ values."""
    if isinstance(value, str):

        def replace(match):
            var = match.group(1)
            val = os.environ.get(var)
            if val is None:
                raise ValueError(f"Environment variable ${var} not set")
            return val

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: interpolate_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]
    return value


def get_config_path() -> Path:
    """Path of the YAML config file, ``$OOHUNT_CONFIG`` or ``./app.yaml``."""
    override = os.environ.get(CONFIG_PATH_ENV)
    if override:
        return Path(override)
    return Path.cwd() / "app.yaml"


def load_app_config() -> dict:
    """Load and parse app.yaml with environment variable interpolation."""
    config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(f"app.yaml not found at {config_path}")

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    return interpolate_env_vars(config)


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = "sqlite+aiosqlite:///./oohunt.db"
    pool_size: int = 5
    pool_overflow: int = 10
    pool_timeout: int = 30
    echo: bool = False
    create_all: bool = True


class CatalogConfig(BaseModel):
    """External product catalog API."""

    base_url: str = "http://localhost:3000/api"
    api_key: str | None = None
    timeout: float = 10.0


class FavoritesConfig(BaseModel):
    """Anonymous favorites storage."""

    data_dir: str = ".data/favorites"
    client_id_prefix: str = "client_"


class CacheConfig(BaseModel):
    """Response caching for public read routes."""

    enabled: bool = True
    default_expiration: int = 120


class SessionConfig(BaseModel):
    """Session cookie written by the account system and read here."""

    cookie_name: str = "session"
    max_age: int = 86400 * 30


class LogfireConfig(BaseModel):
    """Optional Logfire tracing."""

    enabled: bool = False
    service_name: str = "oohunt"
    environment: str | None = None
    sample_rate: float = 1.0
    console: bool = False


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    debug: bool = False
    secret_key: str

    # Sections loaded from app.yaml
    db: DatabaseConfig = DatabaseConfig()
    catalog: CatalogConfig = CatalogConfig()
    favorites: FavoritesConfig = FavoritesConfig()
    cache: CacheConfig = CacheConfig()
    session: SessionConfig = SessionConfig()
    logfire: LogfireConfig = LogfireConfig()


_SECTIONS: dict[str, type[BaseModel]] = {
    "db": DatabaseConfig,
    "catalog": CatalogConfig,
    "favorites": FavoritesConfig,
    "cache": CacheConfig,
    "session": SessionConfig,
    "logfire": LogfireConfig,
}


@lru_cache
def get_settings() -> Settings:
    """Load settings from .env and app.yaml."""
    base_settings = Settings()

    try:
        app_config = load_app_config()
    except FileNotFoundError:
        return base_settings

    updates = {
        name: model(**app_config[name])
        for name, model in _SECTIONS.items()
        if name in app_config
    }

    if updates:
        return base_settings.model_copy(update=updates)

    return base_settings
