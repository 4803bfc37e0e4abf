"""
Preflight checks -- make sure remote endpoints can actually be reached.

Run before a session starts. Only verifies; nothing is downloaded or
installed here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from .errors import ConfigError, RemoteToolError
from .sync.models import Endpoint
from .sync.remote import RemoteTransferTool

logger = logging.getLogger("saveguard.preflight")


@dataclass
class PreflightReport:
    """Result of checking the remote transfer setup."""

    remote_endpoints: int = 0
    tool_available: bool = True
    configured_remotes: set[str] = field(default_factory=set)
    missing_remotes: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Whether sessions can use every configured remote."""
        if self.remote_endpoints == 0:
            return True
        return self.tool_available and not self.missing_remotes


def check_remotes(
    endpoints: Sequence[Endpoint], remote: RemoteTransferTool | None
) -> PreflightReport:
    """Inspect the transfer tool against the configured remote endpoints."""
    needed = sorted({e.remote_name for e in endpoints if e.is_remote and e.remote_name})
    report = PreflightReport(remote_endpoints=len(needed))
    if not needed:
        logger.info("No remote endpoints configured, skipping remote tool check.")
        return report

    if remote is None or not remote.available():
        report.tool_available = False
        report.missing_remotes = needed
        return report

    try:
        report.configured_remotes = remote.list_remotes()
    except RemoteToolError as exc:
        logger.warning("Could not verify remote configuration: %s", exc)
        report.missing_remotes = needed
        return report

    report.missing_remotes = [n for n in needed if n not in report.configured_remotes]
    return report


def ensure_remotes(
    endpoints: Sequence[Endpoint], remote: RemoteTransferTool | None
) -> PreflightReport:
    """Like check_remotes, but raise when a session couldn't proceed.

    Raises:
        ConfigError: If the tool is missing or a remote isn't configured.
    """
    report = check_remotes(endpoints, remote)
    if not report.tool_available:
        raise ConfigError(
            "Remote endpoints are configured but rclone was not found. "
            "Install rclone or set rclone_binary in config.yaml."
        )
    if report.missing_remotes:
        raise ConfigError(
            "Remote(s) not configured in rclone: "
            + ", ".join(report.missing_remotes)
            + ". Run 'saveguard auth' to set them up."
        )
    if report.remote_endpoints:
        logger.info("Remote configuration verified.")
    return report
