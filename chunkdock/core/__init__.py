"""
Core module containing the upload contracts, value types and error taxonomy.

Nothing here touches the filesystem or a web framework.
"""

from .interfaces.lifecycle import IStartable, IStoppable, IHealthCheckable, IComponent
from .interfaces.upload import (
    ChunkMeta, ChunkResult, ChunkStatus, IUploadManager, SessionState
)
from .exceptions import (
    AssemblyFailed,
    InvalidChunkRequest,
    MissingChunk,
    SessionNotFound,
    StagingNotFound,
    UploadError,
    WriteFailure,
)

__all__ = [
    "IStartable",
    "IStoppable",
    "IHealthCheckable",
    "IComponent",
    "ChunkMeta",
    "ChunkResult",
    "ChunkStatus",
    "IUploadManager",
    "SessionState",
    "AssemblyFailed",
    "InvalidChunkRequest",
    "MissingChunk",
    "SessionNotFound",
    "StagingNotFound",
    "UploadError",
    "WriteFailure",
]
