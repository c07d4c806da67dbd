"""
Tests for ApplicationStartup.

This module tests the ApplicationStartup class including service configuration,
startup sequence, and shutdown procedures.
"""

from pathlib import Path
from typing import Any, Dict, List

import pytest

from chunkdock.application.startup import ApplicationStartup
from chunkdock.core.interfaces.lifecycle import IComponent
from chunkdock.infrastructure.config.models import (
    ApplicationConfig, LoggingConfig, UploadConfig
)
from chunkdock.infrastructure.logging.setup import LoggingManager
from chunkdock.infrastructure.services.upload.manager import UploadManager


class MockComponent(IComponent):
    """Mock component for testing startup/shutdown."""

    def __init__(self, name: str, events: List[str]) -> None:
        self._name = name
        self._events = events
        self.should_fail_start = False
        self.should_fail_stop = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def version(self) -> str:
        return "1.0.0"

    async def start(self) -> None:
        if self.should_fail_start:
            raise RuntimeError(f"Mock start failure for {self._name}")
        self._events.append(f"start:{self._name}")

    async def stop(self) -> None:
        self._events.append(f"stop:{self._name}")
        if self.should_fail_stop:
            raise RuntimeError(f"Mock stop failure for {self._name}")

    async def configure(self, config: Dict[str, Any]) -> None:
        pass

    async def check_health(self) -> Dict[str, Any]:
        return {"healthy": True, "status": "running", "details": {}}


class TestApplicationStartup:
    """Test cases for ApplicationStartup."""

    @pytest.fixture
    def config(self, tmp_path: Path) -> ApplicationConfig:
        return ApplicationConfig(
            upload=UploadConfig(
                staging_directory=str(tmp_path / "staging"),
                default_target_directory=str(tmp_path / "output"),
            ),
            logging=LoggingConfig(
                log_directory=str(tmp_path / "logs"),
                console_enabled=False,
                file_enabled=False,
            ),
        )

    @pytest.fixture
    def startup(self, config: ApplicationConfig) -> ApplicationStartup:
        return ApplicationStartup(config)

    @pytest.fixture
    def events(self) -> List[str]:
        return []

    def test_startup_initialization(self, startup: ApplicationStartup, config: ApplicationConfig) -> None:
        assert startup.config is config
        assert startup.components == {}
        with pytest.raises(RuntimeError):
            startup.upload_manager

    def test_configure_services(self, startup: ApplicationStartup) -> None:
        """The standard components are created from configuration."""
        startup.configure_services()

        assert list(startup.components) == ["logging_manager", "upload_manager"]
        assert isinstance(startup.get_component("logging_manager"), LoggingManager)
        assert isinstance(startup.upload_manager, UploadManager)
        assert startup.upload_manager.config is startup.config.upload

    def test_register_duplicate(self, startup: ApplicationStartup, events: List[str]) -> None:
        startup.register("a", MockComponent("a", events))

        with pytest.raises(ValueError):
            startup.register("a", MockComponent("a", events))

    async def test_start_and_stop_order(self, startup: ApplicationStartup, events: List[str]) -> None:
        """Components start in order and stop in reverse."""
        for name in ("a", "b", "c"):
            startup.register(name, MockComponent(name, events))

        await startup.start_application()
        await startup.stop_application()

        assert events == [
            "start:a", "start:b", "start:c",
            "stop:c", "stop:b", "stop:a",
        ]

    async def test_start_failure_rolls_back(self, startup: ApplicationStartup, events: List[str]) -> None:
        """A failing component stops those already started, then re-raises."""
        failing = MockComponent("b", events)
        failing.should_fail_start = True
        startup.register("a", MockComponent("a", events))
        startup.register("b", failing)
        startup.register("c", MockComponent("c", events))

        with pytest.raises(RuntimeError, match="Mock start failure"):
            await startup.start_application()

        assert events == ["start:a", "stop:a"]

    async def test_stop_failure_does_not_block_others(
        self, startup: ApplicationStartup, events: List[str]
    ) -> None:
        failing = MockComponent("a", events)
        failing.should_fail_stop = True
        startup.register("a", failing)
        startup.register("b", MockComponent("b", events))

        await startup.start_application()
        await startup.stop_application()

        assert events[-2:] == ["stop:b", "stop:a"]

    async def test_stop_without_start(self, startup: ApplicationStartup, events: List[str]) -> None:
        startup.register("a", MockComponent("a", events))

        await startup.stop_application()

        assert events == []

    async def test_real_components(self, startup: ApplicationStartup, tmp_path: Path) -> None:
        """The configured services start and stop cleanly."""
        startup.configure_services()

        await startup.start_application()
        health = await startup.upload_manager.check_health()
        await startup.stop_application()

        assert health["healthy"] is True
        assert (tmp_path / "staging").is_dir()
