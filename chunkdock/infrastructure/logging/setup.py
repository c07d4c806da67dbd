"""
Logging setup and configuration utilities.

This module configures loguru with console and rotating file sinks. Modules
across the package log through the standard library ``logging`` module; those
records are forwarded into loguru so every message ends up in the same sinks.
"""

import logging
import sys
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Dict

from loguru import logger as loguru_logger

from ..config.models import LoggingConfig
from ...core.interfaces.lifecycle import IComponent

logger = logging.getLogger(__name__)

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{name}:{function}:{line} - {message}"
)


class LoguruHandler(logging.Handler):
    """Forward standard library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: Any = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk back past the logging module so loguru reports the caller
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        loguru_logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage())


def setup_logging(config: LoggingConfig) -> None:
    """
    Setup application logging with the given configuration.

    Args:
        config: Logging configuration
    """
    loguru_logger.remove()

    if config.console_enabled:
        loguru_logger.add(
            sys.stderr,
            format=CONSOLE_FORMAT,
            level=config.level,
            colorize=True,
            backtrace=True,
            diagnose=False
        )

    if config.file_enabled:
        log_dir = Path(config.log_directory)
        log_dir.mkdir(parents=True, exist_ok=True)

        loguru_logger.add(
            log_dir / "app.log",
            format=FILE_FORMAT,
            level=config.level,
            rotation=config.max_file_size,
            retention=config.backup_count,
            compression="zip",
            backtrace=True,
            diagnose=False
        )

    _route_standard_logging(config.level)


def _route_standard_logging(level: str) -> None:
    """Install the loguru bridge as the only root handler."""
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(LoguruHandler())
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # uvicorn installs its own handlers; let its records propagate to root
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True


class LoggingManager(IComponent):
    """
    Owns the logging sinks for the lifetime of the server.

    ``configure`` takes partial updates, for example ``{"level": "DEBUG"}``,
    and reinstalls the sinks when running.
    """

    def __init__(self, config: Dict[str, Any]) -> None:
        self._config = LoggingConfig(**config)
        self._active = False

    @property
    def name(self) -> str:
        return "LoggingManager"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def log_file(self) -> Path:
        return Path(self._config.log_directory) / "app.log"

    async def start(self) -> None:
        if self._active:
            return

        setup_logging(self._config)
        self._active = True
        logger.info(f"Logging started at level {self._config.level}")

    async def stop(self) -> None:
        if not self._active:
            return

        logger.info("Logging stopped")
        await loguru_logger.complete()
        self._active = False

    async def configure(self, config: Dict[str, Any]) -> None:
        unknown = set(config) - {f.name for f in fields(LoggingConfig)}
        if unknown:
            raise ValueError(f"Unknown logging settings: {sorted(unknown)}")

        self._config = replace(self._config, **config)
        if self._active:
            setup_logging(self._config)
            logger.info(f"Logging reconfigured: {sorted(config)}")

    async def check_health(self) -> Dict[str, Any]:
        log_file = self.log_file
        file_ok = not self._config.file_enabled or log_file.parent.is_dir()

        return {
            'healthy': file_ok,
            'status': 'running' if self._active else 'stopped',
            'details': {
                'log_level': self._config.level,
                'log_file': str(log_file) if self._config.file_enabled else None,
                'log_file_bytes': log_file.stat().st_size if log_file.exists() else 0,
                'console_enabled': self._config.console_enabled,
            }
        }
