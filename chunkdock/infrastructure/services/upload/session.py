"""
Upload session state for one in-flight streamed upload.
"""

import asyncio
from typing import Any, Dict, Optional, Set

from ....core.interfaces.upload import SessionState
from .sink import OutputSink


class UploadSession:
    """
    Server-side state of one chunked upload.

    The destination path and total chunk count are fixed at creation. The
    session exclusively owns its sink; all writes go through ``lock``.
    """

    def __init__(
        self,
        upload_id: str,
        destination_path: str,
        total_chunks: int,
        sink: OutputSink,
        created_at: float
    ) -> None:
        self._upload_id = upload_id
        self._destination_path = destination_path
        self._total_chunks = total_chunks
        self.sink = sink
        self.created_at = created_at
        self.received_chunks: Set[int] = set()
        self.expiry_handle: Optional[asyncio.TimerHandle] = None
        self.state = SessionState.ACTIVE
        self.lock = asyncio.Lock()

    @property
    def upload_id(self) -> str:
        return self._upload_id

    @property
    def destination_path(self) -> str:
        return self._destination_path

    @property
    def total_chunks(self) -> int:
        return self._total_chunks

    @property
    def received_count(self) -> int:
        return len(self.received_chunks)

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    @property
    def is_complete(self) -> bool:
        return self.received_count == self._total_chunks

    def has_chunk(self, index: int) -> bool:
        return index in self.received_chunks

    def mark_received(self, index: int) -> int:
        self.received_chunks.add(index)
        return self.received_count

    def age(self, now: float) -> float:
        return now - self.created_at

    def claim(self, state: SessionState) -> bool:
        """
        Move an active session to a terminal state.

        Returns False if another path already ended the session, so exactly
        one of completion or expiry tears it down.
        """
        if self.state != SessionState.ACTIVE:
            return False
        self.state = state
        return True

    def cancel_expiry(self) -> None:
        if self.expiry_handle is not None:
            self.expiry_handle.cancel()
            self.expiry_handle = None

    def get_info(self, now: Optional[float] = None) -> Dict[str, Any]:
        """Snapshot for health and listing endpoints."""
        info: Dict[str, Any] = {
            "upload_id": self._upload_id,
            "destination_path": self._destination_path,
            "state": self.state.value,
            "total_chunks": self._total_chunks,
            "received_chunks": self.received_count,
            "bytes_written": self.sink.bytes_written,
            "created_at": self.created_at,
        }
        if now is not None:
            info["age"] = self.age(now)
        return info
