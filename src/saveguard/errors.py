"""
Error taxonomy for saveguard.

Anything raised before the managed process starts is fatal and aborts
the run. SyncError and TeardownError are raised by the components that
produce them but the session launcher downgrades them to warnings.
"""

from __future__ import annotations

from typing import Optional


class SaveGuardError(Exception):
    """Base class for every saveguard failure."""


class ConfigError(SaveGuardError):
    """Malformed endpoint spec or invalid configuration."""


class LockContention(SaveGuardError):
    """Another live session holds the instance lock."""

    def __init__(self, pid: Optional[int], lock_path: str):
        self.pid = pid
        self.lock_path = lock_path
        owner = f"PID {pid}" if pid is not None else "an unknown process"
        super().__init__(
            f"Lock {lock_path} is held by {owner}. "
            "Another session appears to be active."
        )


class NoReachableSource(SaveGuardError):
    """No endpoint could be inspected during freshness resolution."""


class EnvironmentSetupError(SaveGuardError):
    """Sandbox or real-data preparation failed before launch."""


class LaunchError(SaveGuardError):
    """The managed executable is missing or failed to start."""


class SessionInterrupted(SaveGuardError):
    """SIGINT or SIGTERM arrived before the game was started."""


class RemoteToolError(SaveGuardError):
    """The external transfer tool is missing or returned failure."""


class RemoteNotFound(RemoteToolError):
    """The remote path does not exist yet."""


class SyncError(SaveGuardError):
    """A single source -> destination synchronization failed."""

    def __init__(self, source: str, destination: str, reason: str):
        self.source = source
        self.destination = destination
        self.reason = reason
        super().__init__(
            f"Sync from '{source}' to '{destination}' failed: {reason}"
        )


class TeardownError(SaveGuardError):
    """Cleanup or restore failed after the session ran."""
