"""
Tests for the expiry sweeper.
"""

import asyncio
import os
from pathlib import Path
from typing import AsyncIterator
from unittest.mock import AsyncMock, patch

import pytest

from conftest import FakeClock, make_meta
from chunkdock.core.exceptions import SessionNotFound
from chunkdock.core.interfaces.upload import SessionState
from chunkdock.infrastructure.config.models import UploadConfig
from chunkdock.infrastructure.services.upload.chunk_store import ChunkStore
from chunkdock.infrastructure.services.upload.registry import SessionRegistry
from chunkdock.infrastructure.services.upload.session import UploadSession
from chunkdock.infrastructure.services.upload.sweeper import ExpirySweeper


class TestExpirySweeper:
    """Test cases for ExpirySweeper."""

    @pytest.fixture
    def store(self, staging_dir: Path) -> ChunkStore:
        return ChunkStore(str(staging_dir))

    @pytest.fixture
    async def registry(
        self, upload_config: UploadConfig, store: ChunkStore, clock: FakeClock
    ) -> AsyncIterator[SessionRegistry]:
        registry = SessionRegistry(upload_config, store, clock)
        yield registry
        await registry.close_all()

    @pytest.fixture
    async def sweeper(
        self, registry: SessionRegistry, store: ChunkStore, upload_config: UploadConfig
    ) -> AsyncIterator[ExpirySweeper]:
        sweeper = ExpirySweeper(registry, store, upload_config)
        yield sweeper
        await sweeper.stop()

    async def test_fresh_sessions_survive(
        self, sweeper: ExpirySweeper, registry: SessionRegistry, output_dir: Path, clock: FakeClock
    ) -> None:
        await registry.resolve_or_create(make_meta(output_dir, 0, 2))
        clock.advance(59.0)

        assert await sweeper.sweep() == 0
        assert "upload-1" in registry

    async def test_stale_session_reclaimed(
        self, sweeper: ExpirySweeper, registry: SessionRegistry, output_dir: Path, clock: FakeClock
    ) -> None:
        """A session older than the timeout is closed and forgotten."""
        session = await registry.resolve_or_create(make_meta(output_dir, 0, 2))
        clock.advance(61.0)

        assert await sweeper.sweep() == 1
        assert "upload-1" not in registry
        assert session.state == SessionState.EXPIRED
        assert session.sink.closed
        assert sweeper.stats["sessions_expired"] == 1

        with pytest.raises(SessionNotFound):
            await registry.resolve_or_create(make_meta(output_dir, 1, 2))

    async def test_already_completed_session_is_skipped(
        self, sweeper: ExpirySweeper, registry: SessionRegistry, output_dir: Path, clock: FakeClock
    ) -> None:
        """A session finished between scan and teardown is not counted."""
        session = await registry.resolve_or_create(make_meta(output_dir, 0, 1))
        session.claim(SessionState.COMPLETED)
        clock.advance(61.0)

        assert await sweeper.sweep() == 0
        registry.remove("upload-1")
        session.cancel_expiry()
        await session.sink.close()

    async def test_teardown_error_does_not_stop_sweep(
        self, sweeper: ExpirySweeper, registry: SessionRegistry, output_dir: Path, clock: FakeClock
    ) -> None:
        """One failing session does not prevent the others being reclaimed."""
        for i in range(2):
            await registry.resolve_or_create(
                make_meta(output_dir, 0, 2, upload_id=f"up-{i}", file_name=f"f{i}.bin"))
        clock.advance(61.0)

        original = registry.teardown
        failing = AsyncMock(side_effect=[RuntimeError("boom"), True])

        async def teardown(
            session: UploadSession,
            reason: str = "expired",
            state: SessionState = SessionState.EXPIRED
        ) -> bool:
            if await failing(session):
                return await original(session, reason, state)
            return False

        with patch.object(registry, "teardown", teardown):
            expired = await sweeper.sweep()

        assert expired == 1
        assert sweeper.stats["errors"] == 1

    async def test_orphaned_staging_removed(
        self, sweeper: ExpirySweeper, registry: SessionRegistry,
        store: ChunkStore, output_dir: Path
    ) -> None:
        """Old staging directories go unless a live session owns them."""
        await store.write_chunk("orphan", 0, b"x")
        await store.write_chunk("upload-1", 0, b"y")
        await store.write_chunk("recent", 0, b"z")
        os.utime(store.staging_dir("orphan"), (100.0, 100.0))
        os.utime(store.staging_dir("upload-1"), (100.0, 100.0))
        await registry.resolve_or_create(make_meta(output_dir, 0, 2))

        await sweeper.sweep()

        assert not await store.has_staging("orphan")
        assert await store.has_staging("upload-1")
        assert await store.has_staging("recent")
        assert sweeper.stats["staging_removed"] == 1

    async def test_background_loop(
        self, sweeper: ExpirySweeper, upload_config: UploadConfig
    ) -> None:
        """The task sweeps on its interval until stopped."""
        upload_config.sweep_interval = 0.02

        await sweeper.start()
        assert sweeper.running
        await asyncio.sleep(0.15)
        await sweeper.stop()

        assert not sweeper.running
        assert sweeper.stats["sweeps"] >= 1
