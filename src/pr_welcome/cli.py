"""CLI entry point for pr-welcome.

Startup sequence for ``serve``:
1. Load configuration from the environment (and .env) plus local files
2. Build the GitHub App client and the webhook dispatcher
3. Log the App identity (non-fatal if it fails)
4. Serve the webhook endpoint until interrupted
"""
from __future__ import annotations

import asyncio
import logging
import sys

import click
import uvicorn
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from .config import AppConfig, ConfigError, load_config
from .github.app import GitHubApp
from .github.errors import AuthError
from .github.webhook import WEBHOOK_PATH, WebhookDispatcher, create_app
from .handlers import register_handlers

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger("pr_welcome")

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
        force=True,
    )


def _load_config_or_exit() -> AppConfig:
    """Load configuration, terminating the process with status 1 on failure."""
    try:
        return load_config()
    except ConfigError as exc:
        err_console.print(str(exc), style="bold red", markup=False)
        err_console.print(exc.hint, markup=False)
        sys.exit(1)


def _build_github_app(config: AppConfig) -> GitHubApp:
    return GitHubApp(
        app_id=config.app_id,
        private_key=config.private_key,
        enterprise_hostname=config.enterprise_hostname,
    )


def _log_identity(github_app: GitHubApp) -> None:
    # Startup continues without a confirmed identity; deliveries may still succeed.
    try:
        identity = asyncio.run(github_app.identify())
    except AuthError as exc:
        logger.warning("Could not confirm GitHub App identity: %s", exc)
        return
    logger.info("Authenticated as '%s'", identity.name)


@click.group()
def cli():
    """pr-welcome: greet new pull requests on behalf of a GitHub App."""
    load_dotenv(".env")


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to bind.")
@click.option(
    "--port",
    type=int,
    default=None,
    help="Port to listen on. Default: from PORT or 3000",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
    envvar="LOG_LEVEL",
    show_default=True,
)
def serve(host, port, log_level):
    """Listen for GitHub webhook deliveries."""
    _setup_logging(log_level)
    config = _load_config_or_exit()

    github_app = _build_github_app(config)
    dispatcher = WebhookDispatcher(config.webhook_secret, github_app.installation_client)
    register_handlers(dispatcher, config)
    _log_identity(github_app)

    port = port or config.port
    app = create_app(dispatcher, WEBHOOK_PATH)
    console.print(f"Server is listening for events at: http://localhost:{port}{WEBHOOK_PATH}")
    console.print("Press Ctrl + C to quit.")
    uvicorn.run(app, host=host, port=port, log_config=None)


@cli.command()
def whoami():
    """Check the App credentials and print the App's name."""
    _setup_logging("WARNING")
    config = _load_config_or_exit()
    github_app = _build_github_app(config)
    try:
        identity = asyncio.run(github_app.identify())
    except AuthError as exc:
        err_console.print(str(exc), style="bold red", markup=False)
        sys.exit(1)
    console.print(f"[bold green]Authenticated as '{identity.name}'[/bold green] ({identity.slug})")
    if config.enterprise_hostname:
        console.print(f"API host: {github_app.base_url}")


if __name__ == "__main__":
    cli()
