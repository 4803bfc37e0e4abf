"""Shared test fixtures for saveguard."""

from __future__ import annotations

import os
import shutil
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

import pytest

from saveguard.errors import RemoteNotFound, RemoteToolError
from saveguard.sync.models import RemoteEntry
from saveguard.sync.remote import RemoteTransferTool
from saveguard.session.supervisor import ProcessHandle, ProcessRunner


def write_tree(root: Path, files: dict[str, str], mtime: Optional[float] = None) -> Path:
    """Create files under ``root``, optionally pinning their mtime."""
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
    return root


def read_tree(root: Path) -> dict[str, str]:
    """Map of relative path -> content for every file under ``root``."""
    return {
        str(p.relative_to(root)).replace(os.sep, "/"): p.read_text()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


class FakeRemote(RemoteTransferTool):
    """Transfer tool backed by local directories, one per remote name.

    Copy semantics match rclone copy: add and overwrite, never delete.
    """

    def __init__(self, roots: dict[str, Path], fail_copies: bool = False):
        self.roots = roots
        self.fail_copies = fail_copies
        self.copies: list[tuple[str, str]] = []
        self.listed: list[str] = []

    def path_for(self, spec: str) -> Path:
        name, sep, rest = spec.partition(":")
        if sep and name in self.roots:
            return self.roots[name] / rest.lstrip("/")
        return Path(spec)

    def list(self, remote_spec: str) -> list[RemoteEntry]:
        self.listed.append(remote_spec)
        name = remote_spec.partition(":")[0]
        if name not in self.roots:
            raise RemoteToolError(f"didn't find section in config file ({name})")
        root = self.path_for(remote_spec)
        if not root.is_dir():
            raise RemoteNotFound(f"{remote_spec}: directory not found")
        return [
            RemoteEntry(
                name=str(p.relative_to(root)),
                modified=datetime.fromtimestamp(p.stat().st_mtime, timezone.utc),
                size=p.stat().st_size,
            )
            for p in root.rglob("*")
            if p.is_file()
        ]

    def copy(self, source_spec: str, destination_spec: str) -> None:
        self.copies.append((source_spec, destination_spec))
        if self.fail_copies:
            raise RemoteToolError("simulated transfer failure")
        src = self.path_for(source_spec)
        dst = self.path_for(destination_spec)
        if not src.is_dir():
            raise RemoteToolError(f"{source_spec}: directory not found")
        shutil.copytree(src, dst, dirs_exist_ok=True)

    def available(self) -> bool:
        return True

    def list_remotes(self) -> set[str]:
        return set(self.roots)


class FakeHandle(ProcessHandle):
    """Process handle whose 'run' is a Python callable.

    ``on_wait`` runs inside wait(). With ``block=True`` the handle then
    keeps running until terminate() is called.
    """

    def __init__(self, on_wait: Optional[Callable[[], None]] = None,
                 exit_code: int = 0, block: bool = False):
        self.on_wait = on_wait
        self.exit_code = exit_code
        self.block = block
        self.terminated = threading.Event()
        self._done: Optional[int] = None

    @property
    def pid(self) -> int:
        return 424242

    def wait(self) -> int:
        if self.on_wait is not None:
            self.on_wait()
        if self.block:
            self.terminated.wait(timeout=10)
        self._done = -15 if self.terminated.is_set() else self.exit_code
        return self._done

    def poll(self) -> Optional[int]:
        return self._done

    def terminate(self, timeout: float = 10.0) -> None:
        self.terminated.set()


class FakeRunner(ProcessRunner):
    """Runner that records launches and hands out FakeHandles."""

    def __init__(self, handle: Optional[FakeHandle] = None):
        self.handle = handle or FakeHandle()
        self.launches: list[dict] = []

    def launch(self, executable, working_dir, env_overrides=None, detach=False):
        self.launches.append({
            "executable": executable,
            "working_dir": working_dir,
            "env": dict(env_overrides or {}),
            "detach": detach,
        })
        return self.handle


@pytest.fixture
def sg_home(tmp_path: Path) -> Path:
    """Temporary saveguard state directory."""
    home = tmp_path / ".saveguard"
    home.mkdir()
    return home


@pytest.fixture
def install_dir(tmp_path: Path) -> Path:
    """Fake game install with an executable file present."""
    install = tmp_path / "install"
    install.mkdir()
    (install / "game.exe").write_text("not really a game")
    return install


@pytest.fixture
def gdrive_root(tmp_path: Path) -> Path:
    root = tmp_path / "gdrive"
    root.mkdir()
    return root


@pytest.fixture
def fake_remote(gdrive_root: Path) -> FakeRemote:
    return FakeRemote({"gdrive": gdrive_root})
