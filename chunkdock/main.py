"""
Command-line interface for the chunkdock upload server.

``chunkdock start`` serves the upload API; the remaining commands manage
configuration files and probe a running server.
"""

import asyncio
import logging
import sys
from typing import Any, Dict, Optional, Tuple

import aiohttp
import typer
import uvicorn

from .application.startup import ApplicationStartup
from .infrastructure.config.loader import ConfigLoader
from .infrastructure.config.models import ApplicationConfig
from .infrastructure.logging.setup import setup_logging
from .presentation.api.app import create_app

cli = typer.Typer(
    name="chunkdock",
    help="Resumable chunked file upload server"
)

logger = logging.getLogger(__name__)


@cli.command()
def start(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    host: Optional[str] = typer.Option(
        None, "--host", help="Server host address"
    ),
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="Server port"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level"
    ),
    debug: bool = typer.Option(
        False, "--debug", help="Enable debug mode"
    )
) -> None:
    """Start the upload server."""
    config = ConfigLoader().load_config(config_file)

    if host:
        config.server.host = host
    if port:
        config.server.port = port
    if log_level:
        config.logging.level = log_level.upper()
    if debug:
        config.debug = True
        config.logging.level = "DEBUG"

    setup_logging(config.logging)
    logger.info(
        f"Starting {config.name} v{config.version} on "
        f"{config.server.host}:{config.server.port}")
    logger.info(
        f"Staging: {config.upload.staging_directory}, "
        f"upload timeout {config.upload.upload_timeout}s, "
        f"sweep every {config.upload.sweep_interval}s")

    try:
        asyncio.run(run_application(config))
    except KeyboardInterrupt:
        logger.info("Server interrupted")
    except Exception as e:
        logger.error(f"Server failed: {e}")
        sys.exit(1)


@cli.command()
def init_config(
    output: str = typer.Option(
        "config.yaml", "--output", "-o", help="Output configuration file"
    ),
    format: str = typer.Option(
        "yaml", "--format", "-f", help="Configuration format (yaml/json)"
    )
) -> None:
    """Write the default configuration to a file."""
    try:
        ConfigLoader().save_config(ApplicationConfig(), output, format)
    except ValueError as e:
        typer.echo(f"Error saving configuration: {e}", err=True)
        sys.exit(1)

    typer.echo(f"Default configuration saved to {output}")


@cli.command()
def validate_config(
    config_file: str = typer.Argument(..., help="Configuration file to validate")
) -> None:
    """Load a configuration file and report the effective upload settings."""
    try:
        config = ConfigLoader().load_config(config_file)
    except (ValueError, TypeError, FileNotFoundError) as e:
        typer.echo(f"Configuration validation failed: {e}", err=True)
        sys.exit(1)

    upload = config.upload
    typer.echo(f"Configuration file {config_file} is valid")
    typer.echo(f"Listening on: {config.server.host}:{config.server.port}")
    typer.echo(f"Staging directory: {upload.staging_directory}")
    typer.echo(f"Upload timeout: {upload.upload_timeout}s")
    typer.echo(f"Water marks: {upload.low_water_mark}/{upload.high_water_mark} bytes")


@cli.command()
def health_check(
    host: str = typer.Option("localhost", "--host", help="Server host"),
    port: int = typer.Option(3000, "--port", help="Server port"),
    timeout: float = typer.Option(10.0, "--timeout", help="Request timeout")
) -> None:
    """Query a running server's detailed health endpoint."""
    url = f"http://{host}:{port}/health/detailed"

    try:
        status, data = asyncio.run(fetch_health(url, timeout))
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        typer.echo(f"Health check failed: {e}")
        sys.exit(1)

    if status != 200:
        typer.echo(f"Server returned status {status}")
        sys.exit(1)

    typer.echo(f"Server is {data.get('status', 'unknown')}")
    details = data.get("components", {}).get("upload_manager", {}).get("details", {})
    if "active_sessions" in details:
        typer.echo(f"Active upload sessions: {details['active_sessions']}")

    if data.get("status") != "healthy":
        sys.exit(1)


async def fetch_health(url: str, timeout: float) -> Tuple[int, Dict[str, Any]]:
    """GET ``url`` and return the status code and JSON body (empty unless 200)."""
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    async with aiohttp.ClientSession(timeout=client_timeout) as session:
        async with session.get(url) as response:
            if response.status != 200:
                return response.status, {}
            return response.status, await response.json()


async def run_application(config: ApplicationConfig) -> None:
    """
    Serve the upload API until interrupted.

    Components start and stop inside the app lifespan, so an interrupted
    server still closes every open upload before exiting.
    """
    config.ensure_directories()

    startup = ApplicationStartup(config)
    startup.configure_services()

    server = uvicorn.Server(uvicorn.Config(
        app=create_app(startup),
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
        access_log=config.debug,
    ))
    await server.serve()


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
