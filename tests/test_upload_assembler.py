"""
Tests for the completion assembler.

Covers both the streaming completion path and assembly of staged chunks.
"""

from pathlib import Path
from typing import AsyncIterator
from unittest.mock import AsyncMock, patch

import pytest

from conftest import make_meta
from chunkdock.core.exceptions import AssemblyFailed, MissingChunk, WriteFailure
from chunkdock.core.interfaces.upload import ChunkStatus, SessionState
from chunkdock.infrastructure.config.models import UploadConfig
from chunkdock.infrastructure.services.upload.assembler import CompletionAssembler
from chunkdock.infrastructure.services.upload.chunk_store import ChunkStore
from chunkdock.infrastructure.services.upload.registry import SessionRegistry
from chunkdock.infrastructure.services.upload.sink import OutputSink


@pytest.fixture
def store(staging_dir: Path) -> ChunkStore:
    return ChunkStore(str(staging_dir))


@pytest.fixture
async def registry(upload_config: UploadConfig, store: ChunkStore) -> AsyncIterator[SessionRegistry]:
    registry = SessionRegistry(upload_config, store)
    yield registry
    await registry.close_all()


@pytest.fixture
def assembler(registry: SessionRegistry, store: ChunkStore) -> CompletionAssembler:
    return CompletionAssembler(registry, store, read_chunk_size=32)


class TestStreamingCompletion:
    """Test cases for finalizing streamed sessions."""

    async def test_incomplete_session_is_left_alone(
        self, assembler: CompletionAssembler, registry: SessionRegistry, output_dir: Path
    ) -> None:
        session = await registry.resolve_or_create(make_meta(output_dir, 0, 2))
        session.mark_received(0)

        assert await assembler.complete_if_done(session) is None
        assert session.is_active
        assert "upload-1" in registry

    async def test_complete_session_is_finalized(
        self, assembler: CompletionAssembler, registry: SessionRegistry, output_dir: Path
    ) -> None:
        """The last chunk closes the output and removes the session."""
        session = await registry.resolve_or_create(make_meta(output_dir, 0, 1))
        session.sink.write(b"payload")
        session.mark_received(0)

        result = await assembler.complete_if_done(session)

        assert result is not None
        assert result.status == ChunkStatus.COMPLETE
        assert result.message == "File upload complete"
        assert result.file_path == str(output_dir / "data.bin")
        assert session.state == SessionState.COMPLETED
        assert session.expiry_handle is None
        assert "upload-1" not in registry
        assert (output_dir / "data.bin").read_bytes() == b"payload"

    async def test_expired_session_is_not_completed(
        self, assembler: CompletionAssembler, registry: SessionRegistry, output_dir: Path
    ) -> None:
        """Completion and expiry cannot both end a session."""
        session = await registry.resolve_or_create(make_meta(output_dir, 0, 1))
        session.mark_received(0)
        await registry.teardown(session)

        assert await assembler.complete_if_done(session) is None
        assert session.state == SessionState.EXPIRED

    async def test_close_failure_marks_session_failed(
        self, assembler: CompletionAssembler, registry: SessionRegistry, output_dir: Path
    ) -> None:
        session = await registry.resolve_or_create(make_meta(output_dir, 0, 1))
        session.mark_received(0)

        with patch.object(session.sink, "close", AsyncMock(side_effect=WriteFailure("boom"))):
            with pytest.raises(WriteFailure):
                await assembler.complete_if_done(session)

        assert session.state == SessionState.FAILED
        assert "upload-1" not in registry
        await session.sink.close()


class TestChunkStoreAssembly:
    """Test cases for assembling staged chunks."""

    async def test_assembles_in_index_order(
        self, assembler: CompletionAssembler, store: ChunkStore, output_dir: Path
    ) -> None:
        """Output equals the chunks concatenated by index, then staging is removed."""
        chunks = [b"a" * 50, b"b" * 10, b"c" * 70]
        for index in (2, 0, 1):
            await store.write_chunk("abc", index, chunks[index])
        output_dir.mkdir()
        sink = OutputSink(str(output_dir / "joined.bin"), high_water_mark=64, low_water_mark=16)

        path = await assembler.assemble("abc", 3, sink)

        assert path == str(output_dir / "joined.bin")
        assert (output_dir / "joined.bin").read_bytes() == b"".join(chunks)
        assert not await store.has_staging("abc")

    async def test_missing_chunk_writes_nothing(
        self, assembler: CompletionAssembler, store: ChunkStore, output_dir: Path
    ) -> None:
        """A gap is reported before the destination is opened."""
        await store.write_chunk("abc", 0, b"zero")
        await store.write_chunk("abc", 2, b"two")
        output_dir.mkdir()
        sink = OutputSink(str(output_dir / "joined.bin"))

        with pytest.raises(MissingChunk) as exc_info:
            await assembler.assemble("abc", 3, sink)

        assert exc_info.value.index == 1
        assert exc_info.value.message == "Missing chunk 1"
        assert not (output_dir / "joined.bin").exists()
        assert await store.list_chunks("abc") == [0, 2]

    async def test_read_failure_keeps_partial_output(
        self, assembler: CompletionAssembler, store: ChunkStore, output_dir: Path
    ) -> None:
        """An I/O error part way through leaves the partial file and the chunks."""
        await store.write_chunk("abc", 0, b"zero")
        await store.write_chunk("abc", 1, b"one")
        output_dir.mkdir()
        sink = OutputSink(str(output_dir / "joined.bin"))

        calls = 0
        original = assembler._pipe_chunk

        async def flaky_pipe(upload_id: str, index: int, target: OutputSink) -> None:
            nonlocal calls
            calls += 1
            if index == 1:
                raise OSError("read error")
            await original(upload_id, index, target)

        with patch.object(assembler, "_pipe_chunk", flaky_pipe):
            with pytest.raises(AssemblyFailed):
                await assembler.assemble("abc", 2, sink)

        assert calls == 2
        assert sink.closed
        assert (output_dir / "joined.bin").read_bytes() == b"zero"
        assert await store.list_chunks("abc") == [0, 1]
