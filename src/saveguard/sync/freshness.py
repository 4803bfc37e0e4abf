"""
Freshness resolver -- which endpoint holds the newest saves?

Local endpoints are walked recursively; remote endpoints are listed
through the transfer tool. Anything that can't be inspected is skipped
with a warning. Ties go to the endpoint configured first.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from ..errors import NoReachableSource, RemoteNotFound, RemoteToolError
from .models import Endpoint
from .remote import RemoteTransferTool

logger = logging.getLogger("saveguard.sync.freshness")

EPOCH = datetime.fromtimestamp(0, timezone.utc)


class EndpointUnreachable(Exception):
    """Raised by probes for endpoints that can't be inspected."""


def local_latest_mtime(path: Path) -> datetime:
    """Most recent file modification time under ``path``.

    An existing but empty directory reports the epoch.

    Raises:
        EndpointUnreachable: If the path is missing or unreadable.
    """
    if not path.is_dir():
        raise EndpointUnreachable(f"{path} does not exist")

    latest = 0.0

    def _on_error(exc: OSError) -> None:
        raise exc

    try:
        for root, _dirs, files in os.walk(path, onerror=_on_error):
            for name in files:
                mtime = os.stat(os.path.join(root, name)).st_mtime
                if mtime > latest:
                    latest = mtime
    except OSError as exc:
        raise EndpointUnreachable(str(exc)) from exc
    return datetime.fromtimestamp(latest, timezone.utc)


def remote_latest_mtime(remote: RemoteTransferTool, spec: str) -> datetime:
    """Most recent modification time reported by a remote listing."""
    try:
        entries = remote.list(spec)
    except RemoteNotFound as exc:
        raise EndpointUnreachable(f"not found yet ({exc})") from exc
    except RemoteToolError as exc:
        raise EndpointUnreachable(str(exc)) from exc

    latest = EPOCH
    for entry in entries:
        modified = entry.modified
        if modified.tzinfo is None:
            modified = modified.replace(tzinfo=timezone.utc)
        if modified > latest:
            latest = modified
    return latest


class FreshnessResolver:
    """Pick the endpoint with the most recently modified content.

    Args:
        remote: Transfer tool used to list remote endpoints.
    """

    def __init__(self, remote: Optional[RemoteTransferTool] = None):
        self.remote = remote

    def latest_mtime(self, endpoint: Endpoint) -> datetime:
        """Probe one endpoint.

        Raises:
            EndpointUnreachable: If it can't be inspected.
        """
        if endpoint.is_remote:
            if self.remote is None:
                raise EndpointUnreachable("no remote transfer tool configured")
            return remote_latest_mtime(self.remote, endpoint.spec)
        return local_latest_mtime(endpoint.local_path)

    def survey(
        self, endpoints: Iterable[Endpoint]
    ) -> list[tuple[Endpoint, Optional[datetime]]]:
        """Probe every endpoint, recording None for unreachable ones."""
        results: list[tuple[Endpoint, Optional[datetime]]] = []
        for endpoint in endpoints:
            try:
                results.append((endpoint, self.latest_mtime(endpoint)))
            except EndpointUnreachable as exc:
                logger.warning(
                    "Could not get mod time for endpoint '%s': %s",
                    endpoint.display, exc,
                )
                results.append((endpoint, None))
        return results

    def resolve(self, endpoints: Iterable[Endpoint]) -> Endpoint:
        """Return the freshest reachable endpoint.

        Ties keep the endpoint seen first in registry order.

        Raises:
            NoReachableSource: If no endpoint could be inspected.
        """
        best: Optional[Endpoint] = None
        best_time: Optional[datetime] = None
        for endpoint, modified in self.survey(endpoints):
            if modified is None:
                continue
            if best_time is None or modified > best_time:
                best, best_time = endpoint, modified

        if best is None:
            raise NoReachableSource(
                "Could not find any valid/accessible save endpoints"
            )
        logger.info(
            "Latest save source identified: '%s' (%s)",
            best.display, best_time.isoformat() if best_time else "?",
        )
        return best
