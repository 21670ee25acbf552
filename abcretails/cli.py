"""
ABC Retails Command-Line Interface

Provides commands to serve the web application and provision storage.
"""

import sys
import json
import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import click
import uvicorn
from pydantic import ValidationError

from abcretails import __version__
from abcretails.core.config_manager import AppConfig, ConfigManager, redact_config
from abcretails.core.logging_config import setup_logging
from abcretails.storage.exceptions import StorageInitializationError
from abcretails.storage.factory import create_storage_backend
from abcretails.storage.service import StorageService
from abcretails.web.app import create_app


def _load_config(config: Optional[Path], overrides: Dict[str, Any]) -> AppConfig:
    try:
        return ConfigManager().load(
            config_file=str(config) if config else None,
            cli_overrides=overrides,
        )
    except ValidationError as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        sys.exit(2)


def _setup_logging(app_config: AppConfig) -> None:
    setup_logging(
        level=app_config.logging.level,
        format_type=app_config.logging.format,
        log_file=app_config.logging.file,
        rotation_size=app_config.logging.rotation_size,
        rotation_count=app_config.logging.rotation_count,
        module_levels=app_config.logging.module_levels,
    )


config_option = click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file",
)

backend_option = click.option(
    "--backend",
    type=click.Choice(["azure", "memory"], case_sensitive=False),
    help="Storage backend (overrides configuration)",
)


def _storage_overrides(backend: Optional[str]) -> Dict[str, Any]:
    return {"storage": {"backend": backend.lower()}} if backend else {}


@click.group()
@click.version_option(version=__version__, prog_name="abcretails")
@click.pass_context
def cli(ctx):
    """
    ABC Retails - customers, products and orders on Azure Storage.
    """
    ctx.ensure_object(dict)


@cli.command()
@click.option("--host", default=None, help="Host to bind to (overrides configuration)")
@click.option("--port", default=None, type=int, help="Port to bind to (overrides configuration)")
@config_option
@backend_option
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Logging level (overrides configuration)",
)
def serve(
    host: Optional[str],
    port: Optional[int],
    config: Optional[Path],
    backend: Optional[str],
    log_level: Optional[str],
):
    """
    Serve the ABC Retails web application.

    Storage is provisioned during start-up; the server refuses to start if
    that fails.

    Examples:
        abcretails serve
        abcretails serve --port 8080 --backend memory
        abcretails serve --config config.yaml --log-level DEBUG
    """
    overrides = _storage_overrides(backend)
    if host:
        overrides.setdefault("server", {})["host"] = host
    if port:
        overrides.setdefault("server", {})["port"] = port
    if log_level:
        overrides.setdefault("logging", {})["level"] = log_level.upper()

    app_config = _load_config(config, overrides)
    _setup_logging(app_config)

    click.echo(f"Starting ABC Retails v{__version__}")
    click.echo(f"Host: {app_config.server.host}:{app_config.server.port}")
    click.echo(f"Storage: {app_config.storage.backend}")
    click.echo()

    try:
        uvicorn.run(
            create_app(app_config),
            host=app_config.server.host,
            port=app_config.server.port,
            log_level=app_config.logging.level.lower(),
            access_log=True,
        )
    except KeyboardInterrupt:
        click.echo("\nShutting down ABC Retails...")
    except Exception as e:
        logging.getLogger("abcretails.cli").error(f"Failed to start server: {e}", exc_info=True)
        sys.exit(1)


async def _initialize_storage(app_config: AppConfig) -> None:
    service = StorageService(create_storage_backend(app_config.storage), app_config.storage)
    try:
        await service.initialize_storage()
    finally:
        await service.close()


@cli.command("init-storage")
@config_option
@backend_option
def init_storage(config: Optional[Path], backend: Optional[str]):
    """
    Provision tables, containers, queues and file shares, then exit.
    """
    app_config = _load_config(config, _storage_overrides(backend))
    _setup_logging(app_config)

    try:
        asyncio.run(_initialize_storage(app_config))
    except StorageInitializationError as e:
        click.echo(f"Storage initialization failed: {e}", err=True)
        sys.exit(1)

    click.echo("Storage initialized")


@cli.command("config")
@config_option
@backend_option
def show_config(config: Optional[Path], backend: Optional[str]):
    """Print the effective configuration with secrets redacted."""
    app_config = _load_config(config, _storage_overrides(backend))
    click.echo(json.dumps(redact_config(app_config), indent=2))


@cli.command()
def version():
    """Show version information."""
    click.echo(f"ABC Retails v{__version__}")


def main():
    """Main entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
