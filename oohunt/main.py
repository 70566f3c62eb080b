"""Module-level ASGI app for ``hypercorn oohunt.main:app``."""

from oohunt.asgi import create_app
from oohunt.lib import observability

app = observability.instrument_app(create_app())
