"""
Output sink with high/low water mark backpressure.

An ``OutputSink`` owns one open file handle. ``write()`` queues bytes and
returns immediately; a background pump task moves queued bytes to disk.
When more than ``high_water_mark`` bytes are queued, ``write()`` returns
False and callers should ``await drain()``, which resumes once the queue has
fallen to ``low_water_mark`` or below.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Deque, Optional

import aiofiles

from ....core.exceptions import WriteFailure

logger = logging.getLogger(__name__)


class OutputSink:
    """Buffered, exclusively-owned writer for one destination file."""

    def __init__(
        self,
        path: str,
        high_water_mark: int = 2 * 1024 * 1024,
        low_water_mark: int = 1024 * 1024,
        mode: str = "wb"
    ) -> None:
        self.path = path
        self.high_water_mark = high_water_mark
        self.low_water_mark = low_water_mark
        self._mode = mode

        self._file: Any = None
        self._queue: Deque[bytes] = deque()
        self._buffered = 0
        self._bytes_written = 0
        self._pending = asyncio.Event()
        self._drained = asyncio.Event()
        self._drained.set()
        self._pump_task: Optional[asyncio.Task[None]] = None
        self._closing = False
        self._closed = False
        self._close_task: Optional[asyncio.Task[None]] = None
        self._error: Optional[BaseException] = None

    @property
    def buffered(self) -> int:
        """Bytes accepted by ``write()`` but not yet on disk."""
        return self._buffered

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    @property
    def opened(self) -> bool:
        return self._file is not None

    @property
    def closed(self) -> bool:
        return self._closing or self._closed

    @property
    def saturated(self) -> bool:
        return self._buffered > self.high_water_mark

    async def open(self) -> "OutputSink":
        """Open (create or truncate) the destination file and start pumping."""
        try:
            self._file = await aiofiles.open(self.path, self._mode)
        except OSError as e:
            raise WriteFailure(
                f"Cannot open {self.path}: {e}", {"path": self.path}) from e

        self._pump_task = asyncio.create_task(self._pump())
        return self

    def write(self, data: bytes) -> bool:
        """
        Queue bytes for writing.

        Returns:
            False when the sink is saturated and the caller should drain.

        Raises:
            WriteFailure: the sink is closed or an earlier write failed
        """
        if self._error is not None:
            raise WriteFailure(
                f"Write to {self.path} failed: {self._error}", {"path": self.path})
        if self.closed:
            raise WriteFailure(f"Sink for {self.path} is closed", {"path": self.path})

        if data:
            self._queue.append(bytes(data))
            self._buffered += len(data)
            self._pending.set()

        if self.saturated:
            self._drained.clear()
            return False
        return True

    async def drain(self) -> None:
        """Wait until buffered bytes fall to the low water mark."""
        await self._drained.wait()
        if self._error is not None:
            raise WriteFailure(
                f"Write to {self.path} failed: {self._error}", {"path": self.path})

    async def close(self) -> None:
        """Flush queued bytes and release the file handle. Idempotent."""
        if self._close_task is None:
            self._close_task = asyncio.ensure_future(self._close())
        await self._close_task

    async def _close(self) -> None:
        self._closing = True
        self._pending.set()

        try:
            if self._pump_task is not None:
                await self._pump_task
        finally:
            if self._file is not None:
                try:
                    await self._file.close()
                except OSError as e:
                    if self._error is None:
                        self._error = e
            self._closed = True
            self._drained.set()

        if self._error is not None:
            raise WriteFailure(
                f"Write to {self.path} failed: {self._error}", {"path": self.path})

    async def _pump(self) -> None:
        while True:
            await self._pending.wait()
            self._pending.clear()

            while self._queue:
                data = self._queue[0]
                try:
                    await self._file.write(data)
                except Exception as e:
                    logger.error(f"Write to {self.path} failed: {e}")
                    self._error = e
                    self._queue.clear()
                    self._buffered = 0
                    self._drained.set()
                    return

                self._queue.popleft()
                self._buffered -= len(data)
                self._bytes_written += len(data)
                if self._buffered <= self.low_water_mark:
                    self._drained.set()

            if self._closing:
                if self._error is None:
                    try:
                        await self._file.flush()
                    except Exception as e:
                        self._error = e
                return
