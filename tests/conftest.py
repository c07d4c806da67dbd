"""
Shared fixtures for the upload tests.
"""

from pathlib import Path

import pytest

from chunkdock.core.interfaces.upload import ChunkMeta
from chunkdock.infrastructure.config.models import UploadConfig


@pytest.fixture
def staging_dir(tmp_path: Path) -> Path:
    return tmp_path / "staging"


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "output"


@pytest.fixture
def upload_config(staging_dir: Path, output_dir: Path) -> UploadConfig:
    """Small water marks so tests exercise backpressure."""
    return UploadConfig(
        high_water_mark=64,
        low_water_mark=16,
        upload_timeout=60.0,
        sweep_interval=30.0,
        staging_directory=str(staging_dir),
        default_target_directory=str(output_dir),
        read_chunk_size=32,
    )


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_meta(
    output_dir: Path,
    index: int,
    total: int,
    upload_id: str = "upload-1",
    file_name: str = "data.bin"
) -> ChunkMeta:
    return ChunkMeta(
        upload_id=upload_id,
        file_name=file_name,
        chunk_index=index,
        total_chunks=total,
        target_directory=str(output_dir),
    )
