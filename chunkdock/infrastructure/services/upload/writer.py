"""
Streaming writer: appends one chunk's bytes to its session's sink.
"""

import logging

from ....core.exceptions import InvalidChunkRequest, SessionNotFound
from ....core.interfaces.upload import ChunkResult, ChunkStatus
from .session import UploadSession

logger = logging.getLogger(__name__)


class StreamingWriter:
    """
    Writes chunks to session sinks under backpressure.

    Chunks are appended in the order they are accepted; clients must send
    one chunk at a time in index order for the output to be correct.
    """

    async def write_chunk(self, session: UploadSession, index: int, data: bytes) -> ChunkResult:
        """
        Append a chunk unless it was already received.

        Must be called with ``session.lock`` held.

        Raises:
            SessionNotFound: the session ended before or during the write
            InvalidChunkRequest: index outside the session's chunk range
            WriteFailure: the sink failed
        """
        if not session.is_active:
            raise SessionNotFound(
                session.upload_id,
                f"Upload session {session.upload_id} is no longer active "
                f"({session.state.value}); restart from chunk 0")

        if not (0 <= index < session.total_chunks):
            raise InvalidChunkRequest(
                f"Chunk index {index} outside [0, {session.total_chunks})",
                {"chunk_index": index, "total_chunks": session.total_chunks})

        if session.has_chunk(index):
            logger.debug(f"Chunk {index} for {session.upload_id} already received")
            return self._result(session, ChunkStatus.ALREADY_RECEIVED, index)

        if not session.sink.write(data):
            await session.sink.drain()

        # Expiry may have ended the session while we waited on the sink
        if not session.is_active:
            raise SessionNotFound(
                session.upload_id,
                f"Upload session {session.upload_id} expired during write; "
                f"restart from chunk 0")

        session.mark_received(index)
        return self._result(session, ChunkStatus.ACCEPTED, index)

    def _result(self, session: UploadSession, status: ChunkStatus, index: int) -> ChunkResult:
        return ChunkResult(
            status=status,
            upload_id=session.upload_id,
            chunk_index=index,
            total_chunks=session.total_chunks,
            received=session.received_count,
        )
