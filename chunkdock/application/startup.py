"""
Component assembly and ordered start/stop for the upload server.

This module builds the application components from configuration and
starts and stops them in order.
"""

import logging
from typing import Dict, List, Optional

from ..core.interfaces.lifecycle import IComponent
from ..infrastructure.config.models import ApplicationConfig
from ..infrastructure.logging.setup import LoggingManager
from ..infrastructure.services.upload.manager import UploadManager

logger = logging.getLogger(__name__)


class ApplicationStartup:
    """
    Owns the logging and upload components for one server run.

    Components start in registration order and stop in reverse. If one fails
    to start, everything already started is stopped again before the error
    propagates.
    """

    def __init__(self, config: ApplicationConfig) -> None:
        self._config = config
        self._components: Dict[str, IComponent] = {}
        self._started_components: List[IComponent] = []

    @property
    def config(self) -> ApplicationConfig:
        return self._config

    @property
    def components(self) -> Dict[str, IComponent]:
        return dict(self._components)

    @property
    def upload_manager(self) -> UploadManager:
        manager = self._components.get("upload_manager")
        if not isinstance(manager, UploadManager):
            raise RuntimeError("Upload manager is not configured")
        return manager

    def get_component(self, name: str) -> Optional[IComponent]:
        return self._components.get(name)

    def register(self, name: str, component: IComponent) -> None:
        """Register a component to be started after those already registered."""
        if name in self._components:
            raise ValueError(f"Component already registered: {name}")
        self._components[name] = component
        logger.debug(f"Registered component: {name}")

    def configure_services(self) -> None:
        """Create the standard components from configuration."""
        logger.debug("Building components from configuration")

        self.register(
            "logging_manager", LoggingManager(vars(self._config.logging)))
        self.register("upload_manager", UploadManager(self._config.upload))

        logger.info(f"Configured components: {list(self._components)}")

    async def start_application(self) -> None:
        """Start all registered components in order."""
        logger.debug(f"Starting {len(self._components)} components")

        for name, component in self._components.items():
            try:
                logger.debug(f"Starting component: {name}")
                await component.start()
                self._started_components.append(component)
                logger.info(f"Started component: {name}")
            except Exception as e:
                logger.error(f"Failed to start component {name}: {e}")
                await self.stop_application()
                raise

        logger.info("All components started")

    async def stop_application(self) -> None:
        """Stop all started components in reverse order."""
        if not self._started_components:
            return

        logger.debug(f"Stopping {len(self._started_components)} components")

        for component in reversed(self._started_components):
            try:
                logger.debug(f"Stopping component: {component.name}")
                await component.stop()
                logger.info(f"Stopped component: {component.name}")
            except Exception as e:
                logger.error(f"Error stopping component {component.name}: {e}")

        self._started_components.clear()
        logger.info("All components stopped")
