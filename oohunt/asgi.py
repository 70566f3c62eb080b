"""ASGI application factory for oohunt."""

import logging
from pathlib import Path

from advanced_alchemy.extensions.litestar import SQLAlchemyPlugin
from litestar import Litestar

from oohunt.app_factory import (
    EXCEPTION_HANDLERS,
    create_response_cache_config,
    create_session_config,
)
from oohunt.auth.identity import SessionLookup, session_cookie_lookup
from oohunt.config import Settings, get_settings
from oohunt.controllers.contact import ContactController, SubscribeController, SubscriptionAdminController
from oohunt.controllers.content import ContentController
from oohunt.controllers.favorites import AnonymousFavoritesController, UserFavoritesController
from oohunt.controllers.health import HealthController
from oohunt.controllers.pages import PageAdminController
from oohunt.controllers.products import CatalogController, CmsProductController
from oohunt.controllers.taxonomy import CategoryController, TagController
from oohunt.db.services.favorites import FileFavoritesStore, register_cleanup_hook
from oohunt.db.store import DocumentStore
from oohunt.lib import observability
from oohunt.lib.catalog import CatalogClient
from oohunt.lib.revalidation import register_revalidation_hooks

logger = logging.getLogger(__name__)

ROUTE_HANDLERS = [
    ContentController,
    PageAdminController,
    TagController,
    CategoryController,
    CmsProductController,
    CatalogController,
    AnonymousFavoritesController,
    UserFavoritesController,
    ContactController,
    SubscribeController,
    SubscriptionAdminController,
    HealthController,
]


def create_app(
    settings: Settings | None = None,
    *,
    session_lookup: SessionLookup | None = None,
    catalog_transport=None,
) -> Litestar:
    """Create and configure the Litestar application.

    Args:
        settings: Settings to use instead of ``get_settings()``
        session_lookup: Replaces the session cookie lookup used by guards
        catalog_transport: httpx transport for the catalog client (tests)

    Returns:
        The Litestar app. The database engine is created on startup and
        disposed on shutdown.
    """
    settings = settings or get_settings()

    observability.configure(settings)
    observability.instrument_httpx()

    store = DocumentStore(settings.db)
    catalog = CatalogClient(settings.catalog, transport=catalog_transport)
    anonymous_favorites = FileFavoritesStore(Path(settings.favorites.data_dir))

    register_revalidation_hooks()
    register_cleanup_hook(store)

    session_config = create_session_config(
        secret_key=settings.secret_key,
        max_age=settings.session.max_age,
        secure=not settings.debug,
        cookie_name=settings.session.cookie_name,
    )

    async def on_startup(_app: Litestar) -> None:
        await store.init()
        Path(settings.favorites.data_dir).mkdir(parents=True, exist_ok=True)

    async def on_shutdown(_app: Litestar) -> None:
        await catalog.close()
        await store.close()

    app = Litestar(
        route_handlers=ROUTE_HANDLERS,
        on_startup=[on_startup],
        on_shutdown=[on_shutdown],
        plugins=[SQLAlchemyPlugin(config=store.alchemy_config)],
        middleware=[session_config.middleware],
        response_cache_config=create_response_cache_config(settings.cache),
        exception_handlers=EXCEPTION_HANDLERS,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.catalog = catalog
    app.state.anonymous_favorites = anonymous_favorites
    app.state.session_lookup = session_lookup or session_cookie_lookup

    logger.info("oohunt app created (debug=%s)", settings.debug)
    return app
