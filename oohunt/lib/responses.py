"""Success envelopes shared by the JSON controllers."""

from typing import Any


def ok(data: Any = None, message: str | None = None) -> dict[str, Any]:
    """CMS/catalog envelope: ``{"status": true, "data": ..., "message"?: ...}``."""
    body: dict[str, Any] = {"status": True, "data": data}
    if message:
        body["message"] = message
    return body


def coded(data: Any = None, message: str = "success", code: int = 200) -> dict[str, Any]:
    """Favorites envelope: ``{"code": ..., "message": ..., "data": ...}``."""
    return {"code": code, "message": message, "data": data}
