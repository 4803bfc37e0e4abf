"""
Endpoint models -- where save data lives between sessions.

An endpoint is either a local directory or a path on a remote reached
through the external transfer tool. Endpoints are parsed once from
configuration and never mutated afterwards.

Spec format::

    path[|interval_seconds[|sync_on_exit_bool]]

    C:\\Saves\\HK               local (single-letter drive prefix)
    /mnt/nas/hk|300           local, pushed every 5 minutes
    gdrive:/saves/hk|0|true   remote, watched, synced on exit
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict

from ..errors import ConfigError

_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False"}


class EndpointKind(str, Enum):
    """Storage kinds an endpoint can point at."""

    LOCAL = "local"
    REMOTE = "remote"


class Endpoint(BaseModel):
    """A configured save storage location.

    Attributes:
        kind: Local directory or remote path.
        path: Filesystem path (local) or path on the remote.
        remote_name: Remote name as known to the transfer tool.
        interval: Seconds between background pushes. Zero means the
            endpoint is fed by the filesystem watch instead.
        sync_on_exit: Tri-state. None inherits the global default.
        label: Display label, normally the raw spec string.
    """

    model_config = ConfigDict(frozen=True)

    kind: EndpointKind
    path: str
    remote_name: Optional[str] = None
    interval: int = 0
    sync_on_exit: Optional[bool] = None
    label: str = ""

    @classmethod
    def local(cls, path: Path | str, label: str = "") -> "Endpoint":
        """Build an ad-hoc local endpoint (working directories, backups)."""
        return cls(kind=EndpointKind.LOCAL, path=str(path), label=label)

    @property
    def is_remote(self) -> bool:
        return self.kind == EndpointKind.REMOTE

    @property
    def is_periodic(self) -> bool:
        return self.interval > 0

    @property
    def local_path(self) -> Path:
        """Expanded filesystem path. Only meaningful for local endpoints."""
        return Path(self.path).expanduser()

    @property
    def spec(self) -> str:
        """Location string understood by the transfer tool."""
        if self.is_remote:
            return f"{self.remote_name}:{self.path}"
        return str(self.local_path)

    @property
    def display(self) -> str:
        return self.label or self.spec

    def effective_sync_on_exit(self, default: bool) -> bool:
        """Resolve the tri-state flag against the global default."""
        if self.sync_on_exit is None:
            return default
        return self.sync_on_exit


class RemoteEntry(BaseModel):
    """One file reported by a remote listing."""

    name: str
    modified: datetime
    size: int = 0


def _is_remote_prefix(prefix: str) -> bool:
    # Single letters are drive prefixes ("C:"), not remote names.
    return (
        len(prefix) > 1
        and "\\" not in prefix
        and "/" not in prefix
    )


def _parse_bool(value: str, raw: str) -> bool:
    if value in _TRUE_WORDS:
        return True
    if value in _FALSE_WORDS:
        return False
    raise ConfigError(
        f"Invalid sync-on-exit value '{value}' in endpoint '{raw}'"
    )


def parse_endpoint(raw: str, primary: bool = False) -> Endpoint:
    """Parse one endpoint spec string.

    Args:
        raw: Spec in ``path[|interval[|sync_on_exit]]`` form.
        primary: True for the first configured endpoint, which
            defaults sync-on-exit to true.

    Returns:
        The parsed Endpoint.

    Raises:
        ConfigError: If any part of the spec is malformed.
    """
    parts = raw.split("|")
    if len(parts) > 3:
        raise ConfigError(f"Too many '|' fields in endpoint '{raw}'")

    path_part = parts[0].strip()
    if not path_part:
        raise ConfigError(f"Endpoint '{raw}' has an empty path")

    prefix, sep, rest = path_part.partition(":")
    if sep and _is_remote_prefix(prefix):
        kind = EndpointKind.REMOTE
        remote_name: Optional[str] = prefix
        path = rest
    else:
        kind = EndpointKind.LOCAL
        remote_name = None
        path = path_part

    interval = 0
    if len(parts) > 1 and parts[1].strip():
        try:
            interval = int(parts[1].strip())
        except ValueError:
            raise ConfigError(
                f"Invalid interval '{parts[1]}' in endpoint '{raw}'"
            ) from None
        if interval < 0:
            raise ConfigError(
                f"Interval must not be negative in endpoint '{raw}'"
            )

    sync_on_exit: Optional[bool] = None
    if len(parts) > 2 and parts[2].strip():
        sync_on_exit = _parse_bool(parts[2].strip(), raw)

    if primary and sync_on_exit is None:
        sync_on_exit = True

    return Endpoint(
        kind=kind,
        path=path,
        remote_name=remote_name,
        interval=interval,
        sync_on_exit=sync_on_exit,
        label=raw,
    )


def build_registry(specs: list[str]) -> tuple[Endpoint, ...]:
    """Parse an ordered list of specs into the endpoint registry."""
    return tuple(
        parse_endpoint(raw, primary=(index == 0))
        for index, raw in enumerate(specs)
    )
