"""
Single-instance lock with stale-lock recovery.

The lock is a file holding the owner's PID. A lock whose owner is dead
is stale and gets reclaimed; a live (or unverifiable) owner blocks.
"""

from __future__ import annotations

import logging
import os
import sys
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import psutil

from ..errors import LockContention

logger = logging.getLogger("saveguard.session.lock")


class ProcessLiveness(str, Enum):
    """Result of probing a PID."""

    ALIVE = "alive"
    DEAD = "dead"
    UNKNOWN = "unknown"


def _probe_posix(pid: int) -> ProcessLiveness:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return ProcessLiveness.DEAD
    except PermissionError:
        # Exists, owned by someone else
        return ProcessLiveness.ALIVE
    except OSError:
        return ProcessLiveness.UNKNOWN
    return ProcessLiveness.ALIVE


def _probe_psutil(pid: int) -> ProcessLiveness:
    try:
        alive = psutil.pid_exists(pid)
    except (psutil.Error, OSError):
        return ProcessLiveness.UNKNOWN
    return ProcessLiveness.ALIVE if alive else ProcessLiveness.DEAD


def probe_process(pid: int) -> ProcessLiveness:
    """Check whether ``pid`` refers to a running process."""
    if pid <= 0:
        return ProcessLiveness.DEAD
    if sys.platform == "win32":
        return _probe_psutil(pid)
    return _probe_posix(pid)


def read_lock_pid(lock_path: Path) -> Optional[int]:
    """PID recorded in a lock file, or None if missing or unparsable."""
    try:
        return int(lock_path.read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return None


class InstanceLock:
    """Filesystem lock enforcing one active session per installation.

    Args:
        lock_path: Lock file location.
        probe: Liveness check, swappable for tests and other platforms.
        pid: PID to record. Defaults to the current process.
    """

    def __init__(
        self,
        lock_path: Path,
        probe: Callable[[int], ProcessLiveness] = probe_process,
        pid: Optional[int] = None,
    ):
        self.lock_path = lock_path
        self.probe = probe
        self.pid = pid if pid is not None else os.getpid()
        self.held = False
        self.reclaimed_from: Optional[int] = None

    def acquire(self) -> "InstanceLock":
        """Take the lock, reclaiming it if stale.

        Raises:
            LockContention: If a live process holds it.
            OSError: If the lock file can't be written.
        """
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        if self._try_create():
            return self

        owner = read_lock_pid(self.lock_path)
        if owner is None:
            logger.warning(
                "Could not read PID from lock file %s, assuming stale.",
                self.lock_path,
            )
        else:
            liveness = self.probe(owner)
            if liveness != ProcessLiveness.DEAD:
                raise LockContention(owner, str(self.lock_path))
            logger.warning(
                "Found stale lock file for non-existent process PID %d. Reclaiming it.",
                owner,
            )
        self.reclaimed_from = owner
        self._write()
        return self

    def _try_create(self) -> bool:
        try:
            fd = os.open(
                self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644,
            )
        except FileExistsError:
            return False
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(str(self.pid))
        self.held = True
        logger.info("Acquired instance lock for PID %d.", self.pid)
        return True

    def _write(self) -> None:
        self.lock_path.write_text(str(self.pid), encoding="utf-8")
        self.held = True
        logger.info("Acquired instance lock for PID %d.", self.pid)

    def release(self) -> None:
        """Remove the lock file if we still own it. Failures are logged."""
        if not self.held:
            return
        self.held = False
        owner = read_lock_pid(self.lock_path)
        if owner is not None and owner != self.pid:
            logger.warning(
                "Lock %s now belongs to PID %d, leaving it alone.",
                self.lock_path, owner,
            )
            return
        try:
            self.lock_path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to remove lock file '%s': %s", self.lock_path, exc)
            return
        logger.info("Released instance lock.")

    def __enter__(self) -> "InstanceLock":
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
