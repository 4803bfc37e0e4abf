"""
Synced launch -- the game uses the real save location directly.

Used when every endpoint is remote and isolation was requested: the
real location is topped up from the freshest remote before launch and
pushed back out afterwards. Remote copies never delete, so files only
present locally survive. Nothing is backed up or restored.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..errors import EnvironmentSetupError, SyncError
from ..sync.models import Endpoint
from ..sync.synchronizer import DirectorySynchronizer
from .environment import SessionEnvironment

logger = logging.getLogger("saveguard.session.synced")


class SyncedEnvironment(SessionEnvironment):
    """Pre/post synchronization around the real save location.

    Args:
        save_path: Real save data location.
        synchronizer: Used to pull the source into ``save_path``.
    """

    def __init__(self, save_path: Path, synchronizer: DirectorySynchronizer):
        self.save_path = save_path
        self.synchronizer = synchronizer

    @property
    def name(self) -> str:
        return "synced"

    def prepare(self, source: Endpoint) -> Path:
        try:
            self.synchronizer.synchronize(
                source, Endpoint.local(self.save_path, label="real save directory"),
            )
        except SyncError as exc:
            raise EnvironmentSetupError(
                f"Failed to pull saves from '{source.display}': {exc}"
            ) from exc
        logger.info("Updated real save directory from '%s'.", source.display)
        return self.save_path

    def env_overrides(self) -> dict[str, str]:
        return {}

    def teardown(self) -> None:
        pass
