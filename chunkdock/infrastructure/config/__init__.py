"""
Configuration infrastructure.

This module provides configuration models and loading from files and
environment variables.
"""

from .models import (
    ApplicationConfig,
    LoggingConfig,
    SecurityConfig,
    ServerConfig,
    UploadConfig,
)
from .loader import ConfigLoader

__all__ = [
    "ApplicationConfig",
    "LoggingConfig",
    "SecurityConfig",
    "ServerConfig",
    "UploadConfig",
    "ConfigLoader",
]
