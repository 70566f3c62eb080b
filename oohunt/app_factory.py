"""Pieces of app construction shared by ``create_app`` and the tests."""

import hashlib
from typing import Any

from litestar.config.response_cache import ResponseCacheConfig
from litestar.exceptions import HTTPException
from litestar.middleware.session.client_side import CookieBackendConfig

from oohunt.config import CacheConfig
from oohunt.lib.exceptions import (
    OohuntError,
    http_exception_handler,
    internal_server_error_handler,
    oohunt_exception_handler,
)
from oohunt.lib.revalidation import cache_key_builder

# Shared exception handlers dict
EXCEPTION_HANDLERS: dict[type[Exception], Any] = {
    OohuntError: oohunt_exception_handler,
    HTTPException: http_exception_handler,
    Exception: internal_server_error_handler,
}


def create_session_config(
    secret_key: str,
    max_age: int = 86400,
    secure: bool = False,
    cookie_name: str = "session",
) -> CookieBackendConfig:
    """Create the config for reading the encrypted session cookie."""
    session_secret = hashlib.sha256(secret_key.encode()).digest()
    return CookieBackendConfig(
        secret=session_secret,
        key=cookie_name,
        max_age=max_age,
        httponly=True,
        secure=secure,
        samesite="lax",
    )


def _never_cache(*_: Any) -> bool:
    return False


def create_response_cache_config(cache: CacheConfig) -> ResponseCacheConfig:
    """Response caching keyed by path, query and the route's cache tag versions."""
    if not cache.enabled:
        return ResponseCacheConfig(key_builder=cache_key_builder, cache_response_filter=_never_cache)
    return ResponseCacheConfig(default_expiration=cache.default_expiration, key_builder=cache_key_builder)
