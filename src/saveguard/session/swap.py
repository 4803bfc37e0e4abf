"""
Transactional swap -- run against the real save location, safely.

    prepare   move real saves to <home>/backup/<id>/data, then populate
              the real location from the freshest endpoint
    teardown  put the backup back, whatever happened in between

Each backup directory carries an ``origin`` file naming the real save
path. If the launcher itself dies mid-session the backup survives, and
the next session restores it before doing anything else.
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..errors import EnvironmentSetupError, SyncError, TeardownError
from ..sync.models import Endpoint
from ..sync.synchronizer import DirectorySynchronizer
from .environment import SessionEnvironment

logger = logging.getLogger("saveguard.session.swap")

ORIGIN_FILE = "origin"
DATA_DIR = "data"
RECOVERED_DIR = "recovered"


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


class SwapController(SessionEnvironment):
    """Swap the real save location in and out around a session.

    Args:
        save_path: Real save data location.
        synchronizer: Used to populate the real location.
        backup_dir: Where relocated saves are kept during the session.
    """

    def __init__(
        self,
        save_path: Path,
        synchronizer: DirectorySynchronizer,
        backup_dir: Path,
    ):
        self.save_path = save_path
        self.synchronizer = synchronizer
        self.backup_dir = backup_dir
        self.session_dir: Optional[Path] = None

    @property
    def name(self) -> str:
        return "swap"

    @property
    def backup_path(self) -> Optional[Path]:
        if self.session_dir is None:
            return None
        return self.session_dir / DATA_DIR

    def recover_leftovers(self) -> int:
        """Restore backups left behind by a session that never tore down.

        Whatever currently sits at the real location is moved under
        ``<home>/backup/recovered/`` first, so nothing is discarded.

        Returns:
            Number of backups restored.
        """
        if not self.backup_dir.is_dir():
            return 0
        restored = 0
        for origin_file in sorted(self.backup_dir.glob(f"*/{ORIGIN_FILE}")):
            session_dir = origin_file.parent
            origin = Path(origin_file.read_text(encoding="utf-8").strip())
            data = session_dir / DATA_DIR
            if not data.exists():
                shutil.rmtree(session_dir, ignore_errors=True)
                continue
            logger.warning(
                "Found save backup from an interrupted session (%s). Restoring it to '%s'.",
                session_dir.name, origin,
            )
            if origin.exists():
                parked = self.backup_dir / RECOVERED_DIR / f"{_timestamp()}-{session_dir.name}"
                parked.parent.mkdir(parents=True, exist_ok=True)
                shutil.move(str(origin), str(parked))
                logger.warning("Moved unsynced session saves to '%s'.", parked)
            origin.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(data), str(origin))
            shutil.rmtree(session_dir, ignore_errors=True)
            restored += 1
        return restored

    def backup(self) -> Optional[Path]:
        """Relocate the real saves into a fresh backup directory.

        Returns:
            The backup data path, or None if there was nothing to back up.
        """
        if not self.save_path.exists():
            logger.info("Real save directory does not exist, no backup needed.")
            return None

        session_dir = self.backup_dir / uuid.uuid4().hex[:12]
        session_dir.mkdir(parents=True)
        (session_dir / ORIGIN_FILE).write_text(str(self.save_path), encoding="utf-8")
        data = session_dir / DATA_DIR
        logger.info("Backing up current saves from '%s' to '%s'", self.save_path, data)
        try:
            os.rename(self.save_path, data)
        except OSError as exc:
            if exc.errno != errno.EXDEV:
                shutil.rmtree(session_dir, ignore_errors=True)
                raise
            self._copy_then_remove(session_dir)
        else:
            self.session_dir = session_dir
        return self.backup_path

    def _copy_then_remove(self, session_dir: Path) -> None:
        # Cross-device: the real saves stay authoritative until the copy
        # is complete. Recovery ignores the journal until data/ exists.
        partial = session_dir / f"{DATA_DIR}.partial"
        try:
            shutil.copytree(self.save_path, partial, symlinks=True)
            os.rename(partial, session_dir / DATA_DIR)
        except (OSError, shutil.Error):
            shutil.rmtree(session_dir, ignore_errors=True)
            raise
        self.session_dir = session_dir
        shutil.rmtree(self.save_path)

    def prepare(self, source: Endpoint) -> Path:
        try:
            self.backup()
            self.synchronizer.synchronize(
                source, Endpoint.local(self.save_path, label="real save directory"),
            )
        except (OSError, shutil.Error, SyncError) as exc:
            try:
                self.teardown()
            except TeardownError as restore_exc:
                logger.error("%s", restore_exc)
            raise EnvironmentSetupError(
                f"Failed to swap in saves from '{source.display}': {exc}"
            ) from exc
        logger.info("Populated real save directory from '%s'.", source.display)
        return self.save_path

    def env_overrides(self) -> dict[str, str]:
        return {}

    def teardown(self) -> None:
        session_dir, self.session_dir = self.session_dir, None
        if session_dir is None:
            return
        data = session_dir / DATA_DIR
        if not data.exists():
            shutil.rmtree(session_dir, ignore_errors=True)
            return

        logger.info("Restoring original saves to '%s'", self.save_path)
        try:
            # The game may have created new files; clear them first.
            if self.save_path.exists():
                shutil.rmtree(self.save_path)
            self.save_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(data), str(self.save_path))
        except (OSError, shutil.Error) as exc:
            # Leave the journal in place so the next session retries.
            raise TeardownError(
                f"CRITICAL: Failed to restore original saves from {data}: {exc}"
            ) from exc
        shutil.rmtree(session_dir, ignore_errors=True)
