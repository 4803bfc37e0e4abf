"""
Remote transfer tool -- the external copy/list capability.

Remote endpoints are never talked to directly. Every listing and
transfer goes through an external tool (rclone), driven as a
subprocess. The abstract interface lets tests and other tools slot in.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import subprocess
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..errors import RemoteNotFound, RemoteToolError
from .models import RemoteEntry

logger = logging.getLogger("saveguard.sync.remote")

_FRACTION = re.compile(r"(\.\d{6})\d+")


class RemoteTransferTool(ABC):
    """Abstract external transfer capability."""

    @abstractmethod
    def list(self, remote_spec: str) -> list[RemoteEntry]:
        """List every file under ``remote:path``, recursively.

        Raises:
            RemoteNotFound: If the path does not exist.
            RemoteToolError: On any other failure.
        """

    @abstractmethod
    def copy(self, source_spec: str, destination_spec: str) -> None:
        """Copy a tree. Adds and overwrites, never deletes.

        Either spec may be a bare local path or ``remote:path``.

        Raises:
            RemoteToolError: If the transfer failed.
        """

    @abstractmethod
    def available(self) -> bool:
        """Check if the tool can be invoked at all."""

    @abstractmethod
    def list_remotes(self) -> set[str]:
        """Names of the remotes the tool is configured for."""


def parse_modtime(value: str) -> datetime:
    """Parse an RFC 3339 timestamp, truncating nanoseconds."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(r"\1", text)
    return datetime.fromisoformat(text)


class RcloneTool(RemoteTransferTool):
    """rclone-backed transfer tool.

    Args:
        binary: Explicit rclone path. Looked up on PATH when None.
        config_path: rclone.conf to use. rclone's default when None.
        retries: Bounded retry count passed as ``--retries``.
        quiet: Hide rclone's output. Otherwise copies run with
            ``--progress`` attached to the terminal.
    """

    def __init__(
        self,
        binary: Optional[str] = None,
        config_path: Optional[Path] = None,
        retries: int = 5,
        quiet: bool = True,
    ):
        self._binary = binary
        self.config_path = config_path
        self.retries = retries
        self.quiet = quiet

    @property
    def binary(self) -> str:
        path = self._binary or shutil.which("rclone")
        if not path:
            raise RemoteToolError("rclone not found locally or in PATH")
        return path

    def available(self) -> bool:
        if self._binary:
            return Path(self._binary).exists() or shutil.which(self._binary) is not None
        return shutil.which("rclone") is not None

    def _base_cmd(self) -> list[str]:
        cmd = [self.binary]
        if self.config_path:
            cmd += ["--config", str(self.config_path)]
        return cmd

    def list(self, remote_spec: str) -> list[RemoteEntry]:
        cmd = self._base_cmd() + ["lsjson", "-R", "--files-only", remote_spec]
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, check=False,
            )
        except OSError as exc:
            raise RemoteToolError(f"Could not run rclone: {exc}") from exc

        if result.returncode != 0:
            if "directory not found" in result.stderr:
                raise RemoteNotFound(f"{remote_spec} does not exist")
            raise RemoteToolError(
                f"rclone lsjson failed for {remote_spec}: {result.stderr.strip()}"
            )

        try:
            items = json.loads(result.stdout or "[]")
            return [
                RemoteEntry(
                    name=item.get("Path") or item["Name"],
                    modified=parse_modtime(item["ModTime"]),
                    size=item.get("Size", 0),
                )
                for item in items
            ]
        except (json.JSONDecodeError, KeyError, ValueError) as exc:
            raise RemoteToolError(
                f"Failed to parse rclone lsjson output: {exc}"
            ) from exc

    def copy(self, source_spec: str, destination_spec: str) -> None:
        cmd = self._base_cmd() + ["--retries", str(self.retries)]
        if not self.quiet:
            cmd.append("--progress")
        cmd += ["copy", source_spec, destination_spec]
        logger.info("Executing: %s", " ".join(cmd))
        try:
            # Progress goes to the terminal. stderr is captured for errors.
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE if self.quiet else None,
                stderr=subprocess.PIPE,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise RemoteToolError(f"Could not run rclone: {exc}") from exc

        if result.returncode != 0:
            raise RemoteToolError(
                f"rclone copy exited {result.returncode}: {result.stderr.strip()}"
            )
        logger.info("rclone copy completed successfully.")

    def list_remotes(self) -> set[str]:
        cmd = self._base_cmd() + ["listremotes"]
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, check=False,
            )
        except OSError as exc:
            raise RemoteToolError(f"Could not run rclone: {exc}") from exc
        if result.returncode != 0:
            raise RemoteToolError(
                f"Failed to list remotes: {result.stderr.strip()}"
            )
        return {
            line.strip()[:-1]
            for line in result.stdout.splitlines()
            if line.strip().endswith(":")
        }

    def run_config_wizard(self) -> int:
        """Run ``rclone config`` attached to the terminal.

        Returns:
            The wizard's exit code.
        """
        cmd = self._base_cmd() + ["config"]
        try:
            return subprocess.run(cmd, check=False).returncode
        except OSError as exc:
            raise RemoteToolError(f"Could not run rclone: {exc}") from exc
