"""
Lifecycle contracts driven by the application startup.

The upload manager and the logging manager are full components. The expiry
sweeper only needs start and stop, since it runs inside the upload manager.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class IStartable(ABC):
    """Something that acquires resources or spawns tasks when started."""

    @abstractmethod
    async def start(self) -> None:
        """Begin work. Calling it on a running instance is a no-op."""
        pass


class IStoppable(ABC):
    """Something that must release files, timers or tasks on shutdown."""

    @abstractmethod
    async def stop(self) -> None:
        pass


class IHealthCheckable(ABC):

    @abstractmethod
    async def check_health(self) -> Dict[str, Any]:
        """
        Report current health.

        The returned mapping carries ``healthy`` (bool), ``status`` (a short
        word such as ``running`` or ``stopped``) and ``details``, for example::

            {'healthy': True, 'status': 'running',
             'details': {'active_sessions': 2}}
        """
        pass


class IComponent(IStartable, IStoppable, IHealthCheckable):
    """A named, versioned unit registered with the application startup."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def version(self) -> str:
        pass

    @abstractmethod
    async def configure(self, config: Dict[str, Any]) -> None:
        """
        Apply a partial settings update.

        Raises:
            ValueError: a key is unknown or a value is out of range
        """
        pass
