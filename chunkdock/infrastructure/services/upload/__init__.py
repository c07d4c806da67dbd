"""
Upload services for chunkdock.

This module provides the chunked upload core: session registry, streaming
writer, chunk store, completion assembler and expiry sweeper.
"""

from .assembler import CompletionAssembler
from .chunk_store import ChunkStore
from .manager import UploadManager
from .registry import SessionRegistry
from .session import UploadSession
from .sink import OutputSink
from .sweeper import ExpirySweeper
from .writer import StreamingWriter

__all__ = [
    "CompletionAssembler",
    "ChunkStore",
    "ExpirySweeper",
    "OutputSink",
    "SessionRegistry",
    "StreamingWriter",
    "UploadManager",
    "UploadSession",
]
