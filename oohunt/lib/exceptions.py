"""Domain errors and the Litestar handlers that turn them into JSON envelopes.

Services raise these errors; controllers let them propagate. Two envelope
shapes exist on the wire:

* CMS/catalog routes: ``{"status": false, "message": ..., "error"?: ...}``
* favorites routes (``opt={"envelope": "code"}``): ``{"code": ..., "message": ..., "data": null}``
"""

import logging

from litestar import Request, Response
from litestar.exceptions import HTTPException
from litestar.status_codes import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from oohunt.lib import observability

logger = logging.getLogger(__name__)

CODE_ENVELOPE = "code"
GENERIC_ERROR_MESSAGE = "Internal server error"


class OohuntError(Exception):
    """Base class for errors with a defined HTTP mapping."""

    status_code: int = HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = GENERIC_ERROR_MESSAGE

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(OohuntError):
    """A required field is missing or malformed."""

    status_code = HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class ConflictError(OohuntError):
    """A unique constraint would be violated, or a delete is blocked by references."""

    status_code = HTTP_400_BAD_REQUEST
    default_message = "Resource already exists"


class NotFoundError(OohuntError):
    status_code = HTTP_404_NOT_FOUND
    default_message = "Not found"


class UnauthorizedError(OohuntError):
    status_code = HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class InternalError(OohuntError):
    """Store or dependency failure. The message is safe to show to clients."""


class UpstreamError(InternalError):
    """The external product catalog failed or answered with an error."""

    default_message = "Product catalog is unavailable"


def _uses_code_envelope(request: Request) -> bool:
    handler = request.scope.get("route_handler")
    if handler is None:
        return False
    return handler.opt.get("envelope") == CODE_ENVELOPE


def error_response(
    request: Request,
    status_code: int,
    message: str,
    error: str | None = None,
) -> Response:
    """Render an error in the envelope the matched route speaks."""
    if _uses_code_envelope(request):
        content = {"code": status_code, "message": message, "data": None}
    else:
        content = {"status": False, "message": message}
        if error:
            content["error"] = error

    return Response(
        content=content,
        status_code=status_code,
        media_type="application/json",
    )


def _log_unhandled(request: Request, exc: Exception) -> None:
    method = request.method
    path = request.url.path
    if not observability.exception(
        "Unhandled exception on {method} {path}", method=method, path=path
    ):
        logger.exception("Unhandled exception on %s %s", method, path, exc_info=exc)


def _debug_detail(request: Request, exc: Exception) -> str | None:
    if not request.app.debug:
        return None
    cause = exc.__cause__ or exc
    return f"{type(cause).__name__}: {cause}"


def oohunt_exception_handler(request: Request, exc: OohuntError) -> Response:
    """Handle domain errors raised by services."""
    if exc.status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        _log_unhandled(request, exc)
        return error_response(request, exc.status_code, exc.message, _debug_detail(request, exc))

    return error_response(request, exc.status_code, exc.message)


def http_exception_handler(request: Request, exc: HTTPException) -> Response:
    """Handle framework HTTP exceptions (guards, parameter parsing, unknown routes)."""
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return error_response(request, exc.status_code, detail)


def internal_server_error_handler(request: Request, exc: Exception) -> Response:
    """Handle anything unexpected with an opaque 500."""
    _log_unhandled(request, exc)
    return error_response(
        request,
        HTTP_500_INTERNAL_SERVER_ERROR,
        GENERIC_ERROR_MESSAGE,
        _debug_detail(request, exc),
    )
