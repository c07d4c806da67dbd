"""
Expiry sweeper.

Periodically reclaims sessions older than the upload timeout and staging
directories nobody has touched for as long. It runs alongside the one-shot
deadline each session arms at creation; whichever fires first tears the
session down and the other finds nothing to do.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from ....core.interfaces.lifecycle import IStartable, IStoppable
from ...config.models import UploadConfig
from .chunk_store import ChunkStore
from .registry import SessionRegistry

logger = logging.getLogger(__name__)


class ExpirySweeper(IStartable, IStoppable):
    """Background task scanning the registry on a fixed interval."""

    def __init__(
        self,
        registry: SessionRegistry,
        chunk_store: ChunkStore,
        config: UploadConfig
    ) -> None:
        self._registry = registry
        self._chunk_store = chunk_store
        self._config = config
        self._task: Optional[asyncio.Task[None]] = None
        self._running = False
        self._stats = {
            "sweeps": 0,
            "sessions_expired": 0,
            "staging_removed": 0,
            "errors": 0,
        }

    @property
    def running(self) -> bool:
        return self._running

    @property
    def stats(self) -> Dict[str, Any]:
        return dict(self._stats)

    async def start(self) -> None:
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Expiry sweeper started (interval {self._config.sweep_interval}s)")

    async def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Expiry sweeper stopped")

    async def sweep(self) -> int:
        """
        Run one sweep.

        Returns:
            Number of sessions torn down
        """
        now = self._registry.clock()
        timeout = self._config.upload_timeout
        expired = 0

        for session in self._registry.sessions():
            if session.age(now) <= timeout:
                continue
            try:
                if await self._registry.teardown(session, reason="stale, cleaned up"):
                    expired += 1
            except Exception as e:
                self._stats["errors"] += 1
                logger.error(f"Error cleaning up stale upload {session.upload_id}: {e}")

        await self._sweep_staging(now, timeout)

        self._stats["sweeps"] += 1
        self._stats["sessions_expired"] += expired
        return expired

    async def _sweep_staging(self, now: float, timeout: float) -> None:
        try:
            stale_ids = await self._chunk_store.stale_uploads(timeout, now)
        except OSError as e:
            self._stats["errors"] += 1
            logger.error(f"Error scanning staging directory {self._chunk_store.root}: {e}")
            return

        for upload_id in stale_ids:
            if upload_id in self._registry:
                continue
            try:
                if await self._chunk_store.remove_staging(upload_id):
                    self._stats["staging_removed"] += 1
            except Exception as e:
                self._stats["errors"] += 1
                logger.error(f"Error removing stale staging files for {upload_id}: {e}")

    async def _run(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._config.sweep_interval)
                await self.sweep()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._stats["errors"] += 1
                logger.error(f"Expiry sweeper error: {e}")
