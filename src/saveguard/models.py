"""
Pydantic models for launcher configuration and session state.

The config is loaded from ``~/.saveguard/config.yaml`` and overlaid with
command-line flags. Endpoint spec strings stay raw here; the registry
is parsed on demand so malformed specs surface as ConfigError before a
session starts.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from . import SAVEGUARD_HOME
from .sync.models import Endpoint, build_registry

DEFAULT_INSTALL_PATH = Path("~/Documents/Hollow Knight")
DEFAULT_SAVE_PATH = Path("~/AppData/LocalLow/Team Cherry/Hollow Knight")
DEFAULT_EXECUTABLE = "Hollow Knight.exe"


class LogLevel(str, Enum):
    """Console verbosity."""

    QUIET = "quiet"
    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"


class SessionState(str, Enum):
    """Lifecycle of one launch session."""

    IDLE = "idle"
    ACQUIRING_LOCK = "acquiring_lock"
    PREPARING_ENVIRONMENT = "preparing_environment"
    RUNNING = "running"
    DRAINING = "draining"
    TORN_DOWN = "torn_down"


class LaunchStrategy(str, Enum):
    """How the managed process gets its save data."""

    DIRECT = "direct"
    SANDBOX = "sandbox"
    SWAP = "swap"
    SYNCED = "synced"


class LaunchConfig(BaseModel):
    """Complete launcher configuration.

    Attributes:
        home: State directory for the lock, backups and logs.
        install_path: Directory containing the managed executable.
        executable: Executable file name, relative to install_path.
        save_path: Real save data location the game reads and writes.
        endpoints: Ordered endpoint spec strings.
        sync_on_exit: Default for endpoints that don't set the flag.
        isolate: Prefer the sandbox strategy over swapping real data.
        remote_retries: Retry count handed to the transfer tool.
        rclone_binary: Explicit transfer tool path (PATH lookup if unset).
        rclone_config: Transfer tool config file.
        log_level: Console verbosity.
        debounce_seconds: Quiet period before a watch-triggered sync.
        stop_timeout: Seconds to wait for the game after SIGTERM.
    """

    home: Path = Path(SAVEGUARD_HOME)
    install_path: Path = DEFAULT_INSTALL_PATH
    executable: str = DEFAULT_EXECUTABLE
    save_path: Path = DEFAULT_SAVE_PATH
    endpoints: list[str] = Field(default_factory=list)
    sync_on_exit: bool = False
    isolate: bool = True
    remote_retries: int = Field(default=5, ge=0)
    rclone_binary: Optional[str] = None
    rclone_config: Optional[Path] = None
    log_level: LogLevel = LogLevel.WARN
    debounce_seconds: float = Field(default=2.0, gt=0)
    stop_timeout: float = Field(default=10.0, gt=0)

    @field_validator("home", "install_path", "save_path", "rclone_config")
    @classmethod
    def _expand(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser() if value is not None else None

    @property
    def executable_path(self) -> Path:
        return self.install_path / self.executable

    @property
    def lock_path(self) -> Path:
        return self.home / "saveguard.lock"

    @property
    def backup_dir(self) -> Path:
        return self.home / "backup"

    @property
    def log_file(self) -> Path:
        return self.home / "logs" / "saveguard.log"

    def registry(self) -> tuple[Endpoint, ...]:
        """Parse the endpoint specs.

        Raises:
            ConfigError: If any spec is malformed.
        """
        return build_registry(self.endpoints)
