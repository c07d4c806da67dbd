"""
chunkdock - chunked file upload server.

Accepts large files as ordered sequences of independently posted chunks,
either streamed straight into the destination file or staged on disk and
assembled on request.
"""

__version__ = "0.1.0"

from .core.interfaces.lifecycle import IStartable, IStoppable, IHealthCheckable, IComponent
from .core.interfaces.upload import ChunkMeta, ChunkResult, ChunkStatus, IUploadManager
from .infrastructure.services.upload.manager import UploadManager

__all__ = [
    "IStartable",
    "IStoppable",
    "IHealthCheckable",
    "IComponent",
    "ChunkMeta",
    "ChunkResult",
    "ChunkStatus",
    "IUploadManager",
    "UploadManager",
]
