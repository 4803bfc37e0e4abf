"""Session environments -- where the managed process finds its saves."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from ..sync.models import Endpoint


class SessionEnvironment(ABC):
    """A prepared save location for one session.

    ``prepare`` must leave no partial mutation behind when it raises.
    ``teardown`` must be safe to call more than once.
    """

    @abstractmethod
    def prepare(self, source: Endpoint) -> Path:
        """Populate the working location from ``source``.

        Returns:
            The working directory the managed process will write to.

        Raises:
            EnvironmentSetupError: After reverting any partial change.
        """

    @abstractmethod
    def env_overrides(self) -> dict[str, str]:
        """Environment variables to set for the managed process."""

    @abstractmethod
    def teardown(self) -> None:
        """Undo the preparation.

        Raises:
            TeardownError: If cleanup or restore failed.
        """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short strategy name for logs."""
