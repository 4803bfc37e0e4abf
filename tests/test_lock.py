"""Tests for the single-instance lock."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from saveguard.errors import LockContention
from saveguard.session.lock import (
    InstanceLock,
    ProcessLiveness,
    probe_process,
    read_lock_pid,
)


def _dead(pid: int) -> ProcessLiveness:
    return ProcessLiveness.DEAD


def _alive(pid: int) -> ProcessLiveness:
    return ProcessLiveness.ALIVE


def _unknown(pid: int) -> ProcessLiveness:
    return ProcessLiveness.UNKNOWN


class TestInstanceLock:
    def test_acquire_fresh(self, sg_home: Path):
        lock = InstanceLock(sg_home / "saveguard.lock", pid=1234)
        lock.acquire()
        assert lock.held
        assert read_lock_pid(sg_home / "saveguard.lock") == 1234

    def test_dead_owner_is_reclaimed(self, sg_home: Path):
        path = sg_home / "saveguard.lock"
        path.write_text("99999")
        lock = InstanceLock(path, probe=_dead, pid=1234).acquire()
        assert lock.reclaimed_from == 99999
        assert read_lock_pid(path) == 1234

    def test_live_owner_blocks(self, sg_home: Path):
        path = sg_home / "saveguard.lock"
        path.write_text("4321")
        with pytest.raises(LockContention) as info:
            InstanceLock(path, probe=_alive, pid=1234).acquire()
        assert info.value.pid == 4321
        assert read_lock_pid(path) == 4321

    def test_unknown_liveness_blocks(self, sg_home: Path):
        path = sg_home / "saveguard.lock"
        path.write_text("4321")
        with pytest.raises(LockContention):
            InstanceLock(path, probe=_unknown, pid=1234).acquire()

    def test_garbage_lock_is_stale(self, sg_home: Path):
        path = sg_home / "saveguard.lock"
        path.write_text("not-a-pid")
        lock = InstanceLock(path, probe=_alive, pid=1234).acquire()
        assert lock.held
        assert read_lock_pid(path) == 1234

    def test_release_removes_file(self, sg_home: Path):
        path = sg_home / "saveguard.lock"
        with InstanceLock(path, pid=1234):
            assert path.exists()
        assert not path.exists()

    def test_release_leaves_foreign_lock(self, sg_home: Path):
        path = sg_home / "saveguard.lock"
        lock = InstanceLock(path, pid=1234).acquire()
        path.write_text("5678")
        lock.release()
        assert read_lock_pid(path) == 5678

    def test_release_is_idempotent(self, sg_home: Path):
        lock = InstanceLock(sg_home / "saveguard.lock", pid=1234).acquire()
        lock.release()
        lock.release()
        assert not lock.held

    def test_live_current_process_blocks_second_session(self, sg_home: Path):
        path = sg_home / "saveguard.lock"
        InstanceLock(path).acquire()
        with pytest.raises(LockContention):
            InstanceLock(path, pid=os.getpid() + 1).acquire()


class TestProbeProcess:
    def test_current_process_alive(self):
        assert probe_process(os.getpid()) == ProcessLiveness.ALIVE

    def test_non_positive_pid_dead(self):
        assert probe_process(0) == ProcessLiveness.DEAD

    @pytest.mark.skipif(os.name == "nt", reason="POSIX signal probing")
    def test_missing_process_dead(self):
        with patch("saveguard.session.lock.os.kill", side_effect=ProcessLookupError):
            assert probe_process(12345) == ProcessLiveness.DEAD

    @pytest.mark.skipif(os.name == "nt", reason="POSIX signal probing")
    def test_permission_denied_means_alive(self):
        with patch("saveguard.session.lock.os.kill", side_effect=PermissionError):
            assert probe_process(1) == ProcessLiveness.ALIVE

    def test_windows_uses_psutil(self):
        with patch("saveguard.session.lock.sys.platform", "win32"), \
                patch("saveguard.session.lock.psutil.pid_exists", return_value=False):
            assert probe_process(12345) == ProcessLiveness.DEAD
