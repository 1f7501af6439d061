"""Command-line interface for gdrive-mcp."""

import asyncio
import json
import logging
import os
import sys

import click

from gdrive_mcp.__version__ import __version__
from gdrive_mcp.auth.providers import build_providers
from gdrive_mcp.config import ServerConfig, load_config, load_env_file
from gdrive_mcp.errors import ConfigurationError, GDriveMCPError
from gdrive_mcp.logging_config import configure_logging

logger = logging.getLogger(__name__)


def _bootstrap() -> ServerConfig:
    configure_logging()
    load_env_file()
    return load_config()


def _exit_now(status: int) -> None:
    """Flush log handlers and end the process without joining threads."""
    logging.shutdown()
    os._exit(status)


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """Google Drive MCP Server - Connect an MCP client to Google Drive and Gmail.

    Provides 29 tools across:
    - Drive (files, folders, sharing, search, comments, revisions)
    - Gmail (list, read, search, send, read state, token status)
    """
    pass


@main.command()
def serve() -> None:
    """Start the stdio MCP server.

    Credentials are read from the environment or a .env file. Exits with
    status 1 if the configuration is unusable, and 0 on SIGINT/SIGTERM.
    """
    from gdrive_mcp.server import GDriveMCPServer

    try:
        config = _bootstrap()
        server = GDriveMCPServer(config)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)
    except Exception as e:
        logger.exception("Failed to start server: %s", e)
        sys.exit(1)

    loop = asyncio.new_event_loop()
    try:
        stopped_by_signal = loop.run_until_complete(server.run())
    except (KeyboardInterrupt, asyncio.CancelledError):
        stopped_by_signal = True
    except Exception as e:
        logger.exception("Server error: %s", e)
        sys.exit(1)

    logger.info("Server stopped")
    if stopped_by_signal:
        # The stdin reader thread blocks until EOF and cannot be cancelled
        _exit_now(0)
    else:
        loop.close()


@main.command()
def doctor() -> None:
    """Check configured credentials by requesting one access token each."""
    try:
        config = _bootstrap()
        oauth, service = build_providers(config)
    except ConfigurationError as e:
        click.echo(f"❌ {e}")
        sys.exit(1)

    click.echo(f"OAuth2 (Gmail, Drive): {'configured' if oauth else 'not configured'}")
    click.echo(f"Service account (Drive): {'configured' if service else 'not configured'}")
    click.echo(f"Drive will use: {'service account' if service else 'OAuth2'}")
    click.echo("")

    failures = 0
    for label, provider in (("OAuth2", oauth), ("Service account", service)):
        if provider is None:
            continue
        try:
            asyncio.run(provider.acquire_lease())
        except GDriveMCPError as e:
            click.echo(f"❌ {label}: {e}")
            failures += 1
        else:
            click.echo(f"✓ {label}: access token acquired")

    if failures:
        sys.exit(1)


@main.command("refresh-token")
def refresh_token() -> None:
    """Refresh the OAuth access token once and print the result as JSON."""
    try:
        config = _bootstrap()
        oauth, _ = build_providers(config)
    except ConfigurationError as e:
        click.echo(f"❌ {e}")
        sys.exit(1)

    if oauth is None:
        click.echo("❌ OAuth credentials are not configured")
        sys.exit(1)

    result = asyncio.run(oauth.manual_refresh())
    click.echo(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))

    if not result.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
