"""
Upload Manager implementation for chunkdock.

This module wires the chunk store, session registry, streaming writer,
completion assembler and expiry sweeper into one component that the HTTP
layer drives.
"""

import logging
import os
import time
from dataclasses import fields, replace
from typing import Any, Callable, Dict, List, Optional

import aiofiles.os

from ....core.exceptions import InvalidChunkRequest, StagingNotFound, WriteFailure
from ....core.interfaces.upload import (
    ChunkMeta, ChunkResult, ChunkStatus, IUploadManager, SessionState
)
from ...config.models import ApplicationConfig, UploadConfig
from .assembler import CompletionAssembler
from .chunk_store import ChunkStore
from .registry import SessionRegistry
from .sink import OutputSink
from .sweeper import ExpirySweeper
from .writer import StreamingWriter

logger = logging.getLogger(__name__)


class UploadManager(IUploadManager):
    """
    Upload manager service implementation.

    Streamed uploads append each chunk straight to the destination file;
    staged uploads persist chunks to the chunk store and are assembled on
    request.
    """

    def __init__(
        self,
        config: Optional[UploadConfig] = None,
        clock: Callable[[], float] = time.time
    ) -> None:
        """
        Initialize upload manager.

        Args:
            config: Upload configuration (water marks, timeouts, directories)
            clock: Time source for session ages
        """
        self._config = config or UploadConfig()
        self._chunk_store = ChunkStore(self._config.staging_directory)
        self._registry = SessionRegistry(self._config, self._chunk_store, clock)
        self._writer = StreamingWriter()
        self._assembler = CompletionAssembler(
            self._registry, self._chunk_store, self._config.read_chunk_size)
        self._sweeper = ExpirySweeper(self._registry, self._chunk_store, self._config)
        self._running = False

        self._stats = {
            "uploads_started": 0,
            "uploads_completed": 0,
            "uploads_failed": 0,
            "chunks_accepted": 0,
            "chunks_retried": 0,
            "chunks_staged": 0,
            "uploads_assembled": 0,
        }

    @property
    def name(self) -> str:
        return "UploadManager"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def config(self) -> UploadConfig:
        return self._config

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def chunk_store(self) -> ChunkStore:
        return self._chunk_store

    @property
    def sweeper(self) -> ExpirySweeper:
        return self._sweeper

    async def start(self) -> None:
        """Start the upload manager service."""
        if self._running:
            return

        await self._chunk_store.ensure_root()
        await self._sweeper.start()
        self._running = True

        logger.info(f"Upload manager started (staging: {self._chunk_store.root})")

    async def stop(self) -> None:
        """Stop the sweeper and close every open upload."""
        if not self._running:
            return

        self._running = False
        await self._sweeper.stop()
        closed = await self._registry.close_all()

        logger.info(f"Upload manager stopped ({closed} open uploads closed)")

    async def configure(self, config: Dict[str, Any]) -> None:
        """
        Update upload settings in place.

        New water marks apply to sessions created afterwards; the sweeper
        picks up a new interval on its next cycle. The whole update is
        validated before any setting changes.

        Raises:
            ValueError: unknown or immutable setting, or the resulting
                settings are inconsistent
        """
        known = {f.name for f in fields(UploadConfig)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise ValueError(f"Unknown upload settings: {unknown}")
        staging = config.get("staging_directory", self._config.staging_directory)
        if staging != self._config.staging_directory:
            raise ValueError("Staging directory cannot be changed at runtime")

        # Runs the same cross-field checks as a loaded configuration
        ApplicationConfig(upload=replace(self._config, **config))

        for key, value in config.items():
            setattr(self._config, key, value)
        self._assembler.read_chunk_size = self._config.read_chunk_size

        logger.info(f"Upload configuration updated: {sorted(config)}")

    async def check_health(self) -> Dict[str, Any]:
        """Perform health check."""
        return {
            "healthy": self._running,
            "status": "running" if self._running else "stopped",
            "details": {
                "active_sessions": len(self._registry),
                "staging_directory": self._chunk_store.root,
                "upload_timeout": self._config.upload_timeout,
                "sweep_interval": self._config.sweep_interval,
                "sweeper_running": self._sweeper.running,
                "statistics": dict(self._stats),
                "sweeper": self._sweeper.stats,
            }
        }

    async def submit_chunk(self, meta: ChunkMeta, data: bytes) -> ChunkResult:
        """Append one chunk to its upload's output file."""
        previous = self._registry.get(meta.upload_id)
        session = await self._registry.resolve_or_create(meta)
        if session is not previous:
            self._stats["uploads_started"] += 1

        async with session.lock:
            try:
                result = await self._writer.write_chunk(session, meta.chunk_index, data)
                if result.status != ChunkStatus.ACCEPTED:
                    self._stats["chunks_retried"] += 1
                    return result

                self._stats["chunks_accepted"] += 1
                completed = await self._assembler.complete_if_done(session)
            except WriteFailure as e:
                self._stats["uploads_failed"] += 1
                logger.error(f"Chunk upload error for {meta.upload_id}, chunk {meta.chunk_index}: {e}")
                await self._registry.teardown(session, reason="failed", state=SessionState.FAILED)
                raise

        if completed is not None:
            self._stats["uploads_completed"] += 1
            return completed

        logger.debug(
            f"Chunk {meta.chunk_index + 1}/{session.total_chunks} received for {meta.upload_id}")
        return result

    async def stage_chunk(self, meta: ChunkMeta, data: bytes) -> ChunkResult:
        """Persist one chunk to the chunk store for later assembly."""
        await self._chunk_store.write_chunk(meta.upload_id, meta.chunk_index, data)
        self._stats["chunks_staged"] += 1

        received = len(await self._chunk_store.list_chunks(meta.upload_id))
        return ChunkResult(
            status=ChunkStatus.STAGED,
            upload_id=meta.upload_id,
            chunk_index=meta.chunk_index,
            total_chunks=meta.total_chunks,
            received=received,
        )

    async def combine_chunks(
        self,
        upload_id: str,
        file_name: str,
        total_chunks: int,
        target_directory: str
    ) -> ChunkResult:
        """Assemble a staged upload into its destination file."""
        if not file_name or not upload_id or total_chunks <= 0:
            raise InvalidChunkRequest("Missing file information")

        if not await self._chunk_store.has_staging(upload_id):
            raise StagingNotFound(upload_id)

        output_dir = os.path.abspath(target_directory)
        try:
            await aiofiles.os.makedirs(output_dir, exist_ok=True)
        except OSError as e:
            raise WriteFailure(
                f"Cannot create directory {output_dir}: {e}", {"upload_id": upload_id}) from e

        sink = OutputSink(
            os.path.join(output_dir, os.path.basename(file_name)),
            high_water_mark=self._config.high_water_mark,
            low_water_mark=self._config.low_water_mark,
        )
        final_path = await self._assembler.assemble(upload_id, total_chunks, sink)
        self._stats["uploads_assembled"] += 1

        return ChunkResult(
            status=ChunkStatus.ASSEMBLED,
            upload_id=upload_id,
            total_chunks=total_chunks,
            received=total_chunks,
            file_path=final_path,
        )

    def get_session_info(self, upload_id: str) -> Optional[Dict[str, Any]]:
        """Get a snapshot of a live session, or None."""
        session = self._registry.get(upload_id)
        if session is None:
            return None
        return session.get_info(self._registry.clock())

    def list_sessions(self) -> List[Dict[str, Any]]:
        """List snapshots of all live sessions."""
        now = self._registry.clock()
        return [session.get_info(now) for session in self._registry.sessions()]
