"""
REST API components for the presentation layer.

This module contains FastAPI application setup, middleware,
and API route definitions.
"""

from .app import create_app
from .dependencies import get_config, get_startup, get_upload_manager

__all__ = [
    "create_app",
    "get_config",
    "get_startup",
    "get_upload_manager",
]
