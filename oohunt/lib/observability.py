"""Optional Logfire tracing.

Logfire is an extra (``pip install oohunt[logfire]``). When it is missing or
disabled in ``app.yaml`` every helper here is a no-op, so callers never need
to check first.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from oohunt.config import LogfireConfig, Settings

_logfire = None
_configured = False


def is_available() -> bool:
    return _logfire is not None and _configured


def _options(config: LogfireConfig, console_options: Any) -> dict[str, Any]:
    options: dict[str, Any] = {
        "service_name": config.service_name,
        "send_to_logfire": "if-token-present",
    }
    if config.environment:
        options["environment"] = config.environment
    if config.sample_rate < 1.0:
        options["trace_sample_rate"] = config.sample_rate
    if config.console:
        options["console"] = console_options
    return options


def configure(settings: Settings) -> bool:
    """Set up logfire when enabled. Returns True once tracing is live."""
    global _logfire, _configured

    if _configured:
        return True
    if not settings.logfire.enabled:
        return False

    try:
        import logfire
    except ImportError:
        return False

    logfire.configure(**_options(settings.logfire, logfire.ConsoleOptions()))
    _logfire = logfire
    _configured = True
    return True


def instrument_app(app):
    """Wrap the ASGI app for request traces, or hand it back untouched."""
    if not is_available():
        return app
    return _logfire.instrument_asgi(app)


def instrument_sqlalchemy(engine) -> None:
    if is_available():
        _logfire.instrument_sqlalchemy(engine=engine)


def instrument_httpx() -> None:
    if is_available():
        _logfire.instrument_httpx()


@contextmanager
def span(name: str, **attrs: Any):
    if not is_available():
        yield None
        return
    with _logfire.span(name, **attrs) as current:
        yield current


def exception(msg: str, **kwargs: Any) -> bool:
    """Record an exception with traceback. Returns False when tracing is off."""
    if not is_available():
        return False
    _logfire.exception(msg, **kwargs)
    return True
