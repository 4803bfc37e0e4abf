"""Tests for the session sandbox."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import read_tree, write_tree
from saveguard.errors import EnvironmentSetupError
from saveguard.session.sandbox import (
    ENV_LAYOUT,
    SIBLING_DIRS,
    SandboxManager,
    data_subpath_for,
)
from saveguard.session.supervisor import build_process_env
from saveguard.sync.models import Endpoint
from saveguard.sync.synchronizer import DirectorySynchronizer


@pytest.fixture
def real_home(tmp_path: Path) -> Path:
    home = tmp_path / "user"
    home.mkdir()
    return home


@pytest.fixture
def sandbox(tmp_path: Path, real_home: Path) -> SandboxManager:
    save_path = real_home / "AppData" / "LocalLow" / "Team Cherry" / "Hollow Knight"
    return SandboxManager(
        save_path, DirectorySynchronizer(),
        real_home=real_home, base_dir=tmp_path / "sandboxes",
    )


class TestDataSubpath:
    def test_relative_to_home(self, real_home: Path):
        assert data_subpath_for(real_home / "a" / "b", real_home) == Path("a/b")

    def test_outside_home_uses_name(self, tmp_path: Path, real_home: Path):
        assert data_subpath_for(tmp_path / "elsewhere" / "saves", real_home) == Path("saves")


class TestSandboxManager:
    def test_prepare_populates_only_data_subpath(self, tmp_path: Path, sandbox: SandboxManager):
        src = write_tree(tmp_path / "src", {"user1.dat": "slot1"})
        working = sandbox.prepare(Endpoint.local(src))

        assert working == sandbox.home / "AppData/LocalLow/Team Cherry/Hollow Knight"
        assert read_tree(working) == {"user1.dat": "slot1"}
        for rel in SIBLING_DIRS:
            assert (sandbox.home / rel).is_dir()
        assert read_tree(sandbox.home / "AppData" / "Roaming") == {}
        # Nothing outside the data subpath holds files
        assert list(read_tree(sandbox.home)) == [
            "AppData/LocalLow/Team Cherry/Hollow Knight/user1.dat"
        ]

    def test_env_overrides_point_inside_sandbox(self, tmp_path: Path, sandbox: SandboxManager):
        src = write_tree(tmp_path / "src", {"user1.dat": "x"})
        sandbox.prepare(Endpoint.local(src))
        env = sandbox.env_overrides()

        assert set(env) == set(ENV_LAYOUT)
        for value in env.values():
            assert Path(value).is_relative_to(sandbox.root)
        assert env["HOME"] == str(sandbox.home)
        assert env["APPDATA"] == str(sandbox.home / "AppData" / "Roaming")

    def test_other_variables_untouched(self, tmp_path: Path, sandbox: SandboxManager):
        src = write_tree(tmp_path / "src", {"user1.dat": "x"})
        sandbox.prepare(Endpoint.local(src))
        with patch.dict(os.environ, {"GAME_LANG": "en", "HOME": "/real/home"}):
            env = build_process_env(sandbox.env_overrides())
        assert env["GAME_LANG"] == "en"
        assert env["HOME"] == str(sandbox.home)

    def test_teardown_removes_root(self, tmp_path: Path, sandbox: SandboxManager):
        src = write_tree(tmp_path / "src", {"user1.dat": "x"})
        sandbox.prepare(Endpoint.local(src))
        root = sandbox.root
        sandbox.teardown()
        assert not root.exists()
        sandbox.teardown()  # idempotent

    def test_failed_prepare_reverts(self, tmp_path: Path, sandbox: SandboxManager):
        with pytest.raises(EnvironmentSetupError):
            sandbox.prepare(Endpoint.local(tmp_path / "missing"))
        assert sandbox.root is None
        assert list((tmp_path / "sandboxes").iterdir()) == []
