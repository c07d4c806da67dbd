"""
Session registry: the single source of truth for live upload sessions.

The registry is an explicit object handed to the components that need it.
Creation and lookup are serialized by an ``asyncio.Lock`` so two requests
for the same identifier never create two sessions.
"""

import asyncio
import logging
import os
import time
from typing import Callable, Dict, List, Optional, Set

import aiofiles.os

from ....core.exceptions import SessionNotFound, WriteFailure
from ....core.interfaces.upload import ChunkMeta, SessionState
from ...config.models import UploadConfig
from .chunk_store import ChunkStore
from .session import UploadSession
from .sink import OutputSink

logger = logging.getLogger(__name__)


class SessionRegistry:
    """In-memory table of upload identifier to ``UploadSession``."""

    def __init__(
        self,
        config: UploadConfig,
        chunk_store: Optional[ChunkStore] = None,
        clock: Callable[[], float] = time.time
    ) -> None:
        self._config = config
        self._chunk_store = chunk_store
        self._clock = clock
        self._sessions: Dict[str, UploadSession] = {}
        self._lock = asyncio.Lock()
        self._teardown_tasks: Set[asyncio.Task[bool]] = set()

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, upload_id: object) -> bool:
        return upload_id in self._sessions

    def get(self, upload_id: str) -> Optional[UploadSession]:
        return self._sessions.get(upload_id)

    def sessions(self) -> List[UploadSession]:
        """Snapshot of live sessions, safe to iterate while sessions end."""
        return list(self._sessions.values())

    async def resolve_or_create(self, meta: ChunkMeta) -> UploadSession:
        """
        Return the live session for ``meta.upload_id``, creating it on chunk 0.

        A session that has ended stays registered until its output is closed.
        Chunk 0 for such a session waits for that close before reopening the
        destination, so the old upload's queued bytes never reach the new file.

        Raises:
            SessionNotFound: no live session exists and the chunk index is not 0
            WriteFailure: the destination could not be opened
        """
        async with self._lock:
            session = self._sessions.get(meta.upload_id)
            if session is not None and session.is_active:
                return session

            if meta.chunk_index != 0:
                raise SessionNotFound(meta.upload_id)

            if session is not None:
                session.cancel_expiry()
                await self._wait_closed(session)
                self.remove(meta.upload_id, session)

            session = await self._create(meta)
            self._sessions[meta.upload_id] = session
            return session

    def remove(self, upload_id: str, session: Optional[UploadSession] = None) -> bool:
        """
        Delete a registry entry. Removing an absent identifier is a no-op.

        When ``session`` is given, the entry is only removed if it still
        refers to that instance.
        """
        current = self._sessions.get(upload_id)
        if current is None or (session is not None and current is not session):
            return False
        del self._sessions[upload_id]
        return True

    async def teardown(
        self,
        session: UploadSession,
        reason: str = "expired",
        state: SessionState = SessionState.EXPIRED
    ) -> bool:
        """
        Forcibly end a session: cancel its deadline, close its sink, remove it.

        The entry is removed only after the sink has closed. Errors are
        logged, never raised, so one failing session cannot stop the
        reclamation of others.

        Returns:
            False if the session had already been completed or torn down
        """
        if not session.claim(state):
            return False

        session.cancel_expiry()
        logger.info(
            f"Upload {reason}: {session.upload_id} "
            f"({session.received_count}/{session.total_chunks} chunks)")

        try:
            await session.sink.close()
        except WriteFailure as e:
            logger.warning(f"Error closing output for {session.upload_id}: {e}")
        finally:
            self.remove(session.upload_id, session)

        await self._remove_staging(session.upload_id)
        return True

    async def close_all(self) -> int:
        """Tear down every live session (used at shutdown)."""
        count = 0
        for session in self.sessions():
            if await self.teardown(session, reason="closed at shutdown"):
                count += 1
        return count

    async def _create(self, meta: ChunkMeta) -> UploadSession:
        output_dir = os.path.abspath(meta.target_directory)
        destination_path = os.path.join(output_dir, os.path.basename(meta.file_name))

        try:
            await aiofiles.os.makedirs(output_dir, exist_ok=True)
        except OSError as e:
            raise WriteFailure(
                f"Cannot create directory {output_dir}: {e}",
                {"upload_id": meta.upload_id}) from e

        sink = OutputSink(
            destination_path,
            high_water_mark=self._config.high_water_mark,
            low_water_mark=self._config.low_water_mark,
        )
        await sink.open()

        session = UploadSession(
            upload_id=meta.upload_id,
            destination_path=destination_path,
            total_chunks=meta.total_chunks,
            sink=sink,
            created_at=self._clock(),
        )
        loop = asyncio.get_running_loop()
        session.expiry_handle = loop.call_later(
            self._config.upload_timeout, self._on_deadline, session)

        logger.info(f"New upload started: {meta.file_name} ({meta.upload_id})")
        return session

    async def _wait_closed(self, session: UploadSession) -> None:
        # Joins the close already started by completion or teardown
        try:
            await session.sink.close()
        except WriteFailure as e:
            logger.debug(f"Previous output for {session.upload_id} closed with error: {e}")

    def _on_deadline(self, session: UploadSession) -> None:
        session.expiry_handle = None
        task = asyncio.ensure_future(self.teardown(session, reason="timeout"))
        self._teardown_tasks.add(task)
        task.add_done_callback(self._teardown_tasks.discard)

    async def _remove_staging(self, upload_id: str) -> None:
        if self._chunk_store is None:
            return
        try:
            await self._chunk_store.remove_staging(upload_id)
        except OSError as e:
            logger.warning(f"Error cleaning up staging files for {upload_id}: {e}")
