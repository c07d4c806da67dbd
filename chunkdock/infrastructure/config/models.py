"""
Dataclass settings for the upload server.

Every section has working defaults, so an empty file or no file at all
yields a runnable configuration. Cross-field checks run on construction.
"""

import os
import tempfile
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


def _default_staging_directory() -> str:
    return os.path.join(tempfile.gettempdir(), "chunkdock-chunks")


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 3000


@dataclass
class UploadConfig:
    """Chunked upload configuration."""
    high_water_mark: int = 2 * 1024 * 1024  # bytes buffered before writers wait
    low_water_mark: int = 1024 * 1024  # bytes buffered before writers resume
    upload_timeout: float = 24 * 60 * 60.0  # seconds
    sweep_interval: float = 60 * 60.0  # seconds
    staging_directory: str = field(default_factory=_default_staging_directory)
    default_target_directory: str = field(default_factory=os.getcwd)
    read_chunk_size: int = 2 * 1024 * 1024


@dataclass
class LoggingConfig:
    """Console and rotating file sinks."""
    level: str = "INFO"
    log_directory: str = "logs"
    max_file_size: str = "10 MB"
    backup_count: int = 5
    console_enabled: bool = True
    file_enabled: bool = True


@dataclass
class SecurityConfig:
    """Cross-origin configuration."""
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass
class ApplicationConfig:
    """Root of the settings tree, one attribute per section."""

    name: str = "chunkdock"
    version: str = "0.1.0"
    debug: bool = False
    environment: str = "production"

    server: ServerConfig = field(default_factory=ServerConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)

    config_file_path: Optional[str] = None

    def __post_init__(self) -> None:
        # ValueError here surfaces as a validate-config failure
        self._validate_port()
        self._validate_durations()
        self._validate_water_marks()

    def _validate_port(self) -> None:
        if not (1 <= self.server.port <= 65535):
            raise ValueError(
                f"Server port must be between 1 and 65535, got {self.server.port}")

    def _validate_durations(self) -> None:
        durations = [
            ("Upload timeout", self.upload.upload_timeout),
            ("Sweep interval", self.upload.sweep_interval),
        ]

        for name, value in durations:
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

    def _validate_water_marks(self) -> None:
        upload = self.upload
        if upload.high_water_mark <= 0 or upload.low_water_mark < 0:
            raise ValueError("Water marks must be positive")
        if upload.low_water_mark > upload.high_water_mark:
            raise ValueError(
                f"Low water mark ({upload.low_water_mark}) exceeds "
                f"high water mark ({upload.high_water_mark})")
        if upload.read_chunk_size <= 0:
            raise ValueError(
                f"Read chunk size must be positive, got {upload.read_chunk_size}")

    def ensure_directories(self) -> None:
        """Create the staging and log directories."""
        for path_str in (self.upload.staging_directory, self.logging.log_directory):
            try:
                Path(path_str).mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ValueError(f"Cannot create directory {path_str}: {e}")

    def to_dict(self) -> Dict[str, Any]:
        """Nested plain-dict form, as written by ``init-config``."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApplicationConfig':
        """Build from a possibly partial mapping; missing sections keep defaults."""
        return cls(
            name=data.get('name', 'chunkdock'),
            version=data.get('version', '0.1.0'),
            debug=data.get('debug', False),
            environment=data.get('environment', 'production'),
            server=ServerConfig(**data.get('server', {})),
            upload=UploadConfig(**data.get('upload', {})),
            logging=LoggingConfig(**data.get('logging', {})),
            security=SecurityConfig(**data.get('security', {})),
            config_file_path=data.get('config_file_path'),
        )
