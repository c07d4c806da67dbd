"""
Filesystem-backed staging area for individually persisted chunks.

Layout::

    <root>/<upload_id>/chunk-0
    <root>/<upload_id>/chunk-1
    ...
"""

import asyncio
import logging
import os
import shutil
import time
from typing import List, Optional

import aiofiles
import aiofiles.os

from ....core.exceptions import InvalidChunkRequest, WriteFailure

logger = logging.getLogger(__name__)

CHUNK_PREFIX = "chunk-"


class ChunkStore:
    """One staging subdirectory per upload identifier, one file per chunk."""

    def __init__(self, root: str) -> None:
        self._root = os.path.abspath(root)

    @property
    def root(self) -> str:
        return self._root

    async def ensure_root(self) -> None:
        await aiofiles.os.makedirs(self._root, exist_ok=True)

    def staging_dir(self, upload_id: str) -> str:
        """Path of the staging directory for an upload."""
        if (not upload_id or upload_id in (".", "..")
                or os.sep in upload_id or (os.altsep and os.altsep in upload_id)):
            raise InvalidChunkRequest(
                f"Invalid upload identifier: {upload_id!r}", {"upload_id": upload_id})
        return os.path.join(self._root, upload_id)

    def chunk_path(self, upload_id: str, index: int) -> str:
        return os.path.join(self.staging_dir(upload_id), f"{CHUNK_PREFIX}{index}")

    async def has_staging(self, upload_id: str) -> bool:
        return await aiofiles.os.path.isdir(self.staging_dir(upload_id))

    async def has_chunk(self, upload_id: str, index: int) -> bool:
        return await aiofiles.os.path.isfile(self.chunk_path(upload_id, index))

    async def write_chunk(self, upload_id: str, index: int, data: bytes) -> str:
        """
        Persist one chunk, replacing any earlier copy of the same index.

        The bytes land in a temporary file that is renamed into place, so a
        chunk file is either absent or complete.
        """
        staging_dir = self.staging_dir(upload_id)
        path = self.chunk_path(upload_id, index)
        partial_path = f"{path}.part"

        try:
            await aiofiles.os.makedirs(staging_dir, exist_ok=True)
            async with aiofiles.open(partial_path, "wb") as f:
                await f.write(data)
            await aiofiles.os.replace(partial_path, path)
        except OSError as e:
            raise WriteFailure(
                f"Cannot store chunk {index} for {upload_id}: {e}",
                {"upload_id": upload_id, "chunk_index": index}) from e

        logger.debug(f"Stored chunk {index} for {upload_id} ({len(data)} bytes)")
        return path

    async def list_chunks(self, upload_id: str) -> List[int]:
        """Sorted indices of the chunk files present for an upload."""
        if not await self.has_staging(upload_id):
            return []

        indices = []
        for name in await aiofiles.os.listdir(self.staging_dir(upload_id)):
            if not name.startswith(CHUNK_PREFIX):
                continue
            suffix = name[len(CHUNK_PREFIX):]
            if suffix.isdigit():
                indices.append(int(suffix))
        return sorted(indices)

    async def first_missing(self, upload_id: str, total_chunks: int) -> Optional[int]:
        """Lowest index in ``[0, total_chunks)`` without a chunk file, or None."""
        present = set(await self.list_chunks(upload_id))
        for index in range(total_chunks):
            if index not in present:
                return index
        return None

    async def remove_chunk(self, upload_id: str, index: int) -> None:
        await aiofiles.os.remove(self.chunk_path(upload_id, index))

    async def remove_staging(self, upload_id: str) -> bool:
        """
        Recursively delete an upload's staging directory.

        Returns:
            True if a directory was removed, False if none existed
        """
        staging_dir = self.staging_dir(upload_id)
        if not await aiofiles.os.path.isdir(staging_dir):
            return False

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, shutil.rmtree, staging_dir)
        logger.info(f"Cleaned up staging directory: {staging_dir}")
        return True

    async def stale_uploads(self, max_age: float, now: Optional[float] = None) -> List[str]:
        """Upload identifiers whose staging directory was last modified before ``now - max_age``."""
        if not await aiofiles.os.path.isdir(self._root):
            return []

        cutoff = (now if now is not None else time.time()) - max_age
        stale = []
        for name in await aiofiles.os.listdir(self._root):
            path = os.path.join(self._root, name)
            try:
                if not await aiofiles.os.path.isdir(path):
                    continue
                stat = await aiofiles.os.stat(path)
            except FileNotFoundError:
                continue
            if stat.st_mtime < cutoff:
                stale.append(name)
        return stale
