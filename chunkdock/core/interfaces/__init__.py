"""
Core interfaces defining the contracts for the system components.
"""

from .lifecycle import IStartable, IStoppable, IHealthCheckable, IComponent
from .upload import ChunkMeta, ChunkResult, ChunkStatus, IUploadManager, SessionState

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
]
