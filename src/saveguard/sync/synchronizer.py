"""
Directory synchronizer -- moves one save tree between endpoints.

    local  -> local   destructive mirror (destination ends up == source)
    remote <-> any    copy-only via the transfer tool (never deletes)

Deletions are never propagated to or from a remote.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from ..errors import RemoteToolError, SyncError
from .models import Endpoint
from .remote import RemoteTransferTool

logger = logging.getLogger("saveguard.sync.synchronizer")


def clear_directory(path: Path) -> None:
    """Remove every entry inside ``path``, keeping the directory itself."""
    for entry in path.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()


def mirror_tree(source: Path, destination: Path) -> None:
    """Make ``destination`` an exact copy of ``source``.

    Raises:
        OSError: If the source is missing or any copy step fails.
    """
    if not source.is_dir():
        raise FileNotFoundError(f"source directory {source} does not exist")
    if destination.exists():
        clear_directory(destination)
    else:
        destination.mkdir(parents=True)
    shutil.copytree(source, destination, dirs_exist_ok=True)


class DirectorySynchronizer:
    """Synchronize save trees between endpoints.

    Args:
        remote: Transfer tool for any endpoint pair that involves a remote.
            May be None when only local endpoints are configured.
    """

    def __init__(self, remote: Optional[RemoteTransferTool] = None):
        self.remote = remote

    def synchronize(self, source: Endpoint, destination: Endpoint) -> None:
        """Push ``source``'s tree to ``destination``.

        Raises:
            SyncError: Naming both endpoints, on any failure.
        """
        if source.is_remote or destination.is_remote:
            self._copy_remote(source, destination)
        else:
            self._mirror_local(source, destination)

    def _mirror_local(self, source: Endpoint, destination: Endpoint) -> None:
        src = source.local_path
        dst = destination.local_path
        if os.path.abspath(src) == os.path.abspath(dst):
            logger.debug("Skipping sync of %s onto itself", src)
            return
        try:
            mirror_tree(src, dst)
        except (OSError, shutil.Error) as exc:
            raise SyncError(source.display, destination.display, str(exc)) from exc
        logger.info("Mirrored '%s' -> '%s'", source.display, destination.display)

    def _copy_remote(self, source: Endpoint, destination: Endpoint) -> None:
        if self.remote is None:
            raise SyncError(
                source.display, destination.display,
                "no remote transfer tool configured",
            )
        if not destination.is_remote:
            try:
                destination.local_path.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise SyncError(
                    source.display, destination.display, str(exc)
                ) from exc
        try:
            self.remote.copy(source.spec, destination.spec)
        except RemoteToolError as exc:
            raise SyncError(source.display, destination.display, str(exc)) from exc
        logger.info("Copied '%s' -> '%s'", source.display, destination.display)
