"""
Infrastructure layer containing filesystem I/O and external libraries.

This layer handles configuration, logging and the chunked upload services.
"""

from .logging.setup import LoggingManager
from .services.upload.manager import UploadManager

__all__ = [
    "LoggingManager",
    "UploadManager",
]
