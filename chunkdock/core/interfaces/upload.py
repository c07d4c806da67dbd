"""
Upload service interfaces for chunkdock.

This module defines the value types exchanged with the chunked upload core
and the contract the HTTP layer uses to drive it.
"""

from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ..exceptions import InvalidChunkRequest
from .lifecycle import IComponent


class ChunkStatus(Enum):
    """Outcome of a chunk request."""
    ACCEPTED = "accepted"
    COMPLETE = "complete"
    ALREADY_RECEIVED = "already_received"
    STAGED = "staged"
    ASSEMBLED = "assembled"


class SessionState(Enum):
    """Upload session state."""
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass(frozen=True)
class ChunkMeta:
    """Metadata carried by every chunk request."""
    upload_id: str
    file_name: str
    chunk_index: int
    total_chunks: int
    target_directory: str

    def __post_init__(self) -> None:
        if not self.upload_id:
            raise InvalidChunkRequest("Missing upload identifier")
        if self.upload_id in (".", "..") or "/" in self.upload_id or "\\" in self.upload_id:
            raise InvalidChunkRequest(
                f"Invalid upload identifier: {self.upload_id!r}",
                {"upload_id": self.upload_id})
        if not self.file_name:
            raise InvalidChunkRequest("Missing file name")
        if self.total_chunks < 1:
            raise InvalidChunkRequest(
                f"Total chunks must be at least 1, got {self.total_chunks}",
                {"total_chunks": self.total_chunks})
        # The upper bound is checked against the session's own total once the
        # session is resolved, so an orphan chunk still reports a lost session
        if self.chunk_index < 0:
            raise InvalidChunkRequest(
                f"Chunk index must not be negative, got {self.chunk_index}",
                {"chunk_index": self.chunk_index})


@dataclass
class ChunkResult:
    """Result reported back to the caller for one chunk or assembly request."""
    status: ChunkStatus
    upload_id: str
    chunk_index: Optional[int] = None
    total_chunks: Optional[int] = None
    received: int = 0
    file_path: Optional[str] = None

    @property
    def message(self) -> str:
        if self.status == ChunkStatus.COMPLETE:
            return "File upload complete"
        if self.status == ChunkStatus.ASSEMBLED:
            return "File assembled successfully"
        if self.status == ChunkStatus.STAGED:
            return f"Chunk {self._position()} staged"
        if self.status == ChunkStatus.ALREADY_RECEIVED:
            return f"Chunk {self._position()} already received"
        return f"Chunk {self._position()} received"

    def _position(self) -> str:
        index = (self.chunk_index or 0) + 1
        return f"{index}/{self.total_chunks}"


class IUploadManager(IComponent):
    """
    Interface for the chunked upload service.

    Accepts chunks for streamed uploads, stages chunks for
    store-and-assemble uploads, and reclaims abandoned sessions.
    """

    @abstractmethod
    async def submit_chunk(self, meta: ChunkMeta, data: bytes) -> ChunkResult:
        """
        Append one chunk to its upload's output file.

        Raises:
            SessionNotFound: chunk index is not 0 and no session exists
            WriteFailure: the output file could not be written
        """
        pass

    @abstractmethod
    async def stage_chunk(self, meta: ChunkMeta, data: bytes) -> ChunkResult:
        """Persist one chunk to the chunk store for later assembly."""
        pass

    @abstractmethod
    async def combine_chunks(
        self,
        upload_id: str,
        file_name: str,
        total_chunks: int,
        target_directory: str
    ) -> ChunkResult:
        """
        Assemble a staged upload into its destination file.

        Raises:
            StagingNotFound: no staging directory for the upload
            MissingChunk: a chunk file is absent
            AssemblyFailed: I/O failed part way through
        """
        pass

    @abstractmethod
    def get_session_info(self, upload_id: str) -> Optional[Dict[str, Any]]:
        """Get a snapshot of a live session, or None."""
        pass

    @abstractmethod
    def list_sessions(self) -> List[Dict[str, Any]]:
        """List snapshots of all live sessions."""
        pass
