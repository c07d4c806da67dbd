"""
Presentation layer containing the HTTP API.

This layer handles request parsing and response formatting for the
chunked upload endpoints.
"""

from .api.app import create_app

__all__ = [
    "create_app",
]
