"""CLI commands for oohunt."""

import asyncio
import base64
import re
import secrets
from pathlib import Path

import click

SECRET_KEY_LINE = re.compile(r"^SECRET_KEY=.*$", re.MULTILINE)


@click.group()
@click.version_option(package_name="oohunt")
def cli():
    """oohunt - content and product API for the storefront."""


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8080, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.option("--workers", default=1, type=int, help="Number of worker processes")
@click.option(
    "--log-level",
    default="info",
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Logging level",
)
def serve(host, port, reload, workers, log_level):
    """Run the API server with hypercorn."""
    import signal

    from hypercorn.asyncio import serve as hypercorn_serve
    from hypercorn.config import Config

    config = Config()
    config.application_path = "oohunt.main:app"
    config.bind = [f"{host}:{port}"]
    config.workers = 1 if reload else workers
    config.loglevel = log_level.upper()
    config.include_server_header = False

    if reload:
        from hypercorn.run import run

        config.use_reloader = True
        run(config)
        return

    from oohunt.main import app

    shutdown_event = asyncio.Event()
    loop = asyncio.new_event_loop()
    loop.add_signal_handler(signal.SIGINT, shutdown_event.set)
    loop.add_signal_handler(signal.SIGTERM, shutdown_event.set)
    try:
        loop.run_until_complete(hypercorn_serve(app, config, shutdown_trigger=shutdown_event.wait))
    finally:
        loop.close()


def _generate_key(fmt: str, length: int) -> str:
    if fmt == "hex":
        return secrets.token_hex(length)
    if fmt == "base64":
        return base64.b64encode(secrets.token_bytes(length)).decode("ascii")
    return secrets.token_urlsafe(length)


def _write_env_key(env_path: Path, key: str) -> None:
    """Set SECRET_KEY in a .env file, keeping every other line."""
    content = env_path.read_text() if env_path.exists() else ""
    line = f"SECRET_KEY={key}"
    if SECRET_KEY_LINE.search(content):
        content = SECRET_KEY_LINE.sub(line, content)
    else:
        if content and not content.endswith("\n"):
            content += "\n"
        content += line + "\n"
    env_path.write_text(content)


@cli.command()
@click.option("--write", type=click.Path(), default=None, help="Write SECRET_KEY to a .env file")
@click.option(
    "--format",
    "fmt",
    default="urlsafe",
    type=click.Choice(["urlsafe", "hex", "base64"]),
    help="Output format for the secret key",
)
@click.option("--length", default=32, type=int, help="Number of random bytes")
def secret(write, fmt, length):
    """Generate the secret used to decrypt session cookies."""
    key = _generate_key(fmt, length)
    if write:
        _write_env_key(Path(write), key)
        click.echo(f"SECRET_KEY written to {write}")
    else:
        click.echo(key)


@cli.command("init-db")
def init_db():
    """Create any missing tables in the configured database."""
    from oohunt.config import get_settings
    from oohunt.db.store import DocumentStore

    store = DocumentStore(get_settings().db)

    async def run() -> None:
        await store.init()
        try:
            await store.create_all()
        finally:
            await store.close()

    asyncio.run(run())
    click.echo("Database tables are up to date")


@cli.command("forget-user")
@click.argument("user_id")
def forget_user(user_id):
    """Run the user-deleted cleanup (drops the user's favorites)."""
    from oohunt.config import get_settings
    from oohunt.db.services.favorites import register_cleanup_hook
    from oohunt.db.store import DocumentStore
    from oohunt.lib.hooks import USER_DELETED, hooks

    store = DocumentStore(get_settings().db)
    register_cleanup_hook(store)

    async def run() -> None:
        await store.init()
        try:
            await hooks.do_action(USER_DELETED, user_id)
        finally:
            await store.close()

    asyncio.run(run())
    click.echo(f"Cleared data for user {user_id}")
