"""
API router modules for different endpoints.
"""

from . import health, upload

__all__ = [
    "health",
    "upload",
]
