"""Liveness endpoint with a database round trip."""

import logging
from typing import Any

from litestar import Controller, Response, get
from litestar.datastructures import State
from litestar.status_codes import HTTP_200_OK, HTTP_503_SERVICE_UNAVAILABLE
from sqlalchemy.exc import SQLAlchemyError

from oohunt.db.store import StoreNotInitialized
from oohunt.lib.responses import ok

logger = logging.getLogger(__name__)


class HealthController(Controller):
    path = "/api/health"

    @get("/")
    async def health(self, state: State) -> Response[dict[str, Any]]:
        try:
            await state.store.ping()
        except (SQLAlchemyError, OSError, StoreNotInitialized) as exc:
            logger.warning("Health check failed: %s", exc)
            return Response(
                content={"status": False, "message": "Database unavailable"},
                status_code=HTTP_503_SERVICE_UNAVAILABLE,
            )
        return Response(content=ok({"database": "ok"}), status_code=HTTP_200_OK)
