"""
Session sandbox -- a throwaway home directory for the managed process.

Layout of a sandbox root::

    saveguard-sandbox-XXXX/
    └── home/                          HOME, USERPROFILE
        ├── .config/                   XDG_CONFIG_HOME
        ├── .local/share/              XDG_DATA_HOME
        └── AppData/
            ├── Local/                 LOCALAPPDATA
            ├── LocalLow/
            │   └── Team Cherry/Hollow Knight/   <- populated
            └── Roaming/               APPDATA

Only the save subpath gets data; every sibling exists but is empty.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from ..errors import EnvironmentSetupError, SyncError, TeardownError
from ..sync.models import Endpoint
from ..sync.synchronizer import DirectorySynchronizer
from .environment import SessionEnvironment

logger = logging.getLogger("saveguard.session.sandbox")

SANDBOX_HOME = "home"

# Variable -> location relative to the sandbox home ("" is the home itself)
ENV_LAYOUT: dict[str, str] = {
    "HOME": "",
    "USERPROFILE": "",
    "APPDATA": "AppData/Roaming",
    "LOCALAPPDATA": "AppData/Local",
    "XDG_DATA_HOME": ".local/share",
    "XDG_CONFIG_HOME": ".config",
}

SIBLING_DIRS = [
    "AppData/Roaming",
    "AppData/Local",
    "AppData/LocalLow",
    ".local/share",
    ".config",
]


def data_subpath_for(save_path: Path, home: Optional[Path] = None) -> Path:
    """Save location relative to the user's home.

    Falls back to the save directory's name when it lives outside home.
    """
    home = (home or Path.home()).expanduser()
    try:
        return save_path.expanduser().relative_to(home)
    except ValueError:
        return Path(save_path.name)


class SandboxManager(SessionEnvironment):
    """Build, populate and remove an isolated sandbox root.

    Args:
        save_path: Real save location the process would normally use.
        synchronizer: Used to copy the source into the sandbox.
        real_home: User home the save path is relative to.
        base_dir: Parent for the sandbox root. System temp when None.
    """

    def __init__(
        self,
        save_path: Path,
        synchronizer: DirectorySynchronizer,
        real_home: Optional[Path] = None,
        base_dir: Optional[Path] = None,
    ):
        self.save_path = save_path
        self.synchronizer = synchronizer
        self.real_home = real_home
        self.base_dir = base_dir
        self.data_subpath = data_subpath_for(save_path, real_home)
        self.root: Optional[Path] = None

    @property
    def name(self) -> str:
        return "sandbox"

    @property
    def home(self) -> Path:
        if self.root is None:
            raise RuntimeError("sandbox has not been prepared")
        return self.root / SANDBOX_HOME

    @property
    def working_dir(self) -> Path:
        return self.home / self.data_subpath

    def build(self) -> Path:
        """Create the root and the empty directory skeleton."""
        if self.base_dir is not None:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        self.root = Path(
            tempfile.mkdtemp(
                prefix="saveguard-sandbox-",
                dir=str(self.base_dir) if self.base_dir else None,
            )
        )
        for rel in SIBLING_DIRS:
            (self.home / rel).mkdir(parents=True, exist_ok=True)
        self.working_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Created sandbox at %s", self.root)
        return self.root

    def prepare(self, source: Endpoint) -> Path:
        try:
            self.build()
            self.synchronizer.synchronize(
                source, Endpoint.local(self.working_dir, label="sandbox"),
            )
        except (OSError, SyncError) as exc:
            try:
                self.teardown()
            except TeardownError as cleanup_exc:
                logger.warning("%s", cleanup_exc)
            raise EnvironmentSetupError(
                f"Failed to prepare sandbox from '{source.display}': {exc}"
            ) from exc
        logger.info(
            "Populated sandbox save directory from '%s'.", source.display,
        )
        return self.working_dir

    def env_overrides(self) -> dict[str, str]:
        """Map every user-data variable into the sandbox home."""
        home = self.home
        return {
            var: str(home / rel) if rel else str(home)
            for var, rel in ENV_LAYOUT.items()
        }

    def teardown(self) -> None:
        root, self.root = self.root, None
        if root is None or not root.exists():
            return
        try:
            shutil.rmtree(root)
        except OSError as exc:
            raise TeardownError(f"Could not remove sandbox {root}: {exc}") from exc
        logger.info("Removed sandbox %s", root)
