"""
Completion assembler.

Two ways an upload becomes a finished file:

* streaming path: after each accepted chunk, ``complete_if_done`` checks the
  received count and finalizes the session once every chunk is in;
* chunk-store path: ``assemble`` concatenates staged chunk files in index
  order into an output sink.
"""

import logging
from typing import Optional

import aiofiles

from ....core.exceptions import AssemblyFailed, MissingChunk, WriteFailure
from ....core.interfaces.upload import ChunkResult, ChunkStatus, SessionState
from .chunk_store import ChunkStore
from .registry import SessionRegistry
from .session import UploadSession
from .sink import OutputSink

logger = logging.getLogger(__name__)


class CompletionAssembler:
    """Finalizes streamed sessions and assembles staged uploads."""

    def __init__(
        self,
        registry: SessionRegistry,
        chunk_store: ChunkStore,
        read_chunk_size: int = 2 * 1024 * 1024
    ) -> None:
        self._registry = registry
        self._chunk_store = chunk_store
        self.read_chunk_size = read_chunk_size

    async def complete_if_done(self, session: UploadSession) -> Optional[ChunkResult]:
        """
        Finalize the session if all chunks have arrived.

        Must be called with ``session.lock`` held, directly after an accepted
        write, so no further chunk can be accepted once this returns a result.

        Returns:
            The completion result, or None if chunks are still outstanding

        Raises:
            WriteFailure: flushing or closing the output failed
        """
        if not session.is_complete or not session.claim(SessionState.COMPLETED):
            return None

        try:
            await session.sink.close()
        except WriteFailure:
            session.state = SessionState.FAILED
            raise
        finally:
            session.cancel_expiry()
            self._registry.remove(session.upload_id, session)

        logger.info(f"Upload complete: {session.destination_path} ({session.upload_id})")
        await self._cleanup_staging(session.upload_id)

        return ChunkResult(
            status=ChunkStatus.COMPLETE,
            upload_id=session.upload_id,
            total_chunks=session.total_chunks,
            received=session.received_count,
            file_path=session.destination_path,
        )

    async def assemble(self, upload_id: str, total_chunks: int, sink: OutputSink) -> str:
        """
        Concatenate staged chunks ``0..total_chunks-1`` into ``sink``.

        Every chunk file is checked before the sink is opened, so a missing
        chunk leaves the destination untouched. A failure after that point
        leaves the partial output in place.

        Returns:
            The destination path

        Raises:
            MissingChunk: a chunk file is absent
            AssemblyFailed: reading or writing failed part way through
        """
        missing = await self._chunk_store.first_missing(upload_id, total_chunks)
        if missing is not None:
            raise MissingChunk(missing)

        try:
            if not sink.opened:
                await sink.open()
            for index in range(total_chunks):
                await self._pipe_chunk(upload_id, index, sink)
            await sink.close()
        except (OSError, WriteFailure) as e:
            logger.error(f"Error combining chunks for {upload_id}: {e}")
            await self._abort(sink)
            raise AssemblyFailed(
                f"Failed to combine chunks: {e}",
                {"upload_id": upload_id, "path": sink.path}) from e

        logger.info(f"Assembled {total_chunks} chunks into {sink.path} ({upload_id})")
        await self._cleanup_staging(upload_id, total_chunks)
        return sink.path

    async def _pipe_chunk(self, upload_id: str, index: int, sink: OutputSink) -> None:
        async with aiofiles.open(self._chunk_store.chunk_path(upload_id, index), "rb") as f:
            while True:
                data = await f.read(self.read_chunk_size)
                if not data:
                    break
                if not sink.write(data):
                    await sink.drain()

    async def _abort(self, sink: OutputSink) -> None:
        try:
            await sink.close()
        except WriteFailure as e:
            logger.warning(f"Error closing partial output {sink.path}: {e}")

    async def _cleanup_staging(self, upload_id: str, total_chunks: int = 0) -> None:
        try:
            for index in range(total_chunks):
                await self._chunk_store.remove_chunk(upload_id, index)
            await self._chunk_store.remove_staging(upload_id)
        except OSError as e:
            logger.error(f"Error cleaning up temp files for {upload_id}: {e}")
