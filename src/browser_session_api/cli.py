"""Command line interface for browser-session-api."""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
import uvicorn

from .config import load_config
from .server.service import create_app

app = typer.Typer(help="Browser Session API entry point")


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Configure logging before executing any command."""

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@app.command()
def version() -> None:
    """Print the package version."""

    try:
        typer.echo(get_version("browser-session-api"))
    except PackageNotFoundError:  # pragma: no cover - when running from source tree
        typer.echo("0.0.0")


@app.command()
def serve(
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to YAML configuration."),
    ] = None,
    env_file: Annotated[
        Optional[Path],
        typer.Option(
            "--env-file",
            help="Path to an .env file with default configuration values.",
        ),
    ] = None,
    host: Annotated[
        Optional[str],
        typer.Option("--host", help="Binding address for the HTTP server."),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="HTTP port for the server."),
    ] = None,
    browser: Annotated[
        Optional[str],
        typer.Option("--browser", help="Engine used when a start request names none."),
    ] = None,
    headless: Annotated[
        Optional[bool],
        typer.Option("--headless/--headed", help="Default headless mode for new sessions."),
    ] = None,
    idle_timeout: Annotated[
        Optional[float],
        typer.Option("--idle-timeout", help="Close sessions idle for this many seconds."),
    ] = None,
) -> None:
    """Run the HTTP server."""

    overrides: dict[str, Any] = {}
    if host is not None or port is not None:
        overrides.setdefault("server", {})
        if host is not None:
            overrides["server"]["host"] = host
        if port is not None:
            overrides["server"]["port"] = port
    if browser is not None or headless is not None:
        overrides.setdefault("browser", {})
        if browser is not None:
            overrides["browser"]["default_engine"] = browser.lower()
        if headless is not None:
            overrides["browser"]["headless"] = headless
    if idle_timeout is not None:
        overrides["sessions"] = {"idle_timeout": idle_timeout}

    config = load_config(config_path, env_file=env_file, **overrides)
    typer.echo(f"Serving browser sessions on {config.server.host}:{config.server.port}")
    try:
        uvicorn.run(create_app(config), host=config.server.host, port=config.server.port)
    except SystemExit as exc:
        # uvicorn exits non-zero when it cannot bind the listener
        if exc.code:
            typer.echo(
                f"Server failed to start. If port {config.server.port} is already in use, "
                "pick another with --port or the PORT environment variable "
                f"(find the holder with: lsof -i :{config.server.port} | grep LISTEN).",
                err=True,
            )
        raise


if __name__ == "__main__":
    app()
