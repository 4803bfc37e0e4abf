"""
Tests for the freshness resolver.
"""

from __future__ import annotations

import time
from pathlib import Path

import pytest

from conftest import FakeRemote, write_tree
from saveguard.errors import NoReachableSource
from saveguard.sync.freshness import EPOCH, FreshnessResolver, local_latest_mtime
from saveguard.sync.models import parse_endpoint

NOW = time.time()


def _local(tmp_path: Path, name: str, mtime: float) -> str:
    write_tree(tmp_path / name, {"user1.dat": name, "deep/user2.dat": name}, mtime=mtime)
    return str(tmp_path / name)


class TestLocalLatestMtime:
    def test_walks_recursively(self, tmp_path: Path):
        root = write_tree(tmp_path / "s", {"a.dat": "1"}, mtime=NOW - 100)
        write_tree(root, {"x/y/z.dat": "2"}, mtime=NOW - 10)
        assert local_latest_mtime(root).timestamp() == pytest.approx(NOW - 10, abs=1)

    def test_empty_directory_is_epoch(self, tmp_path: Path):
        (tmp_path / "empty").mkdir()
        assert local_latest_mtime(tmp_path / "empty") == EPOCH


class TestResolve:
    def test_picks_strictly_greatest(self, tmp_path: Path):
        specs = [
            _local(tmp_path, "old", NOW - 300),
            _local(tmp_path, "newest", NOW - 10),
            _local(tmp_path, "mid", NOW - 100),
        ]
        chosen = FreshnessResolver().resolve([parse_endpoint(s) for s in specs])
        assert chosen.path == specs[1]

    def test_single_reachable_endpoint_always_wins(self, tmp_path: Path):
        spec = _local(tmp_path, "ancient", 1000.0)
        endpoints = [parse_endpoint(str(tmp_path / "missing")), parse_endpoint(spec)]
        assert FreshnessResolver().resolve(endpoints).path == spec

    def test_zero_reachable_fails(self, tmp_path: Path):
        endpoints = [parse_endpoint(str(tmp_path / "a")), parse_endpoint(str(tmp_path / "b"))]
        with pytest.raises(NoReachableSource):
            FreshnessResolver().resolve(endpoints)

    def test_empty_registry_fails(self):
        with pytest.raises(NoReachableSource):
            FreshnessResolver().resolve([])

    def test_tie_goes_to_first_in_registry(self, tmp_path: Path):
        first = _local(tmp_path, "first", NOW - 50)
        second = _local(tmp_path, "second", NOW - 50)
        chosen = FreshnessResolver().resolve([parse_endpoint(first), parse_endpoint(second)])
        assert chosen.path == first

    def test_remote_newer_than_local(
        self, tmp_path: Path, fake_remote: FakeRemote, gdrive_root: Path,
    ):
        local = _local(tmp_path, "primary", NOW - 500)
        write_tree(gdrive_root / "saves", {"user1.dat": "cloud"}, mtime=NOW - 5)
        endpoints = [parse_endpoint(local), parse_endpoint("gdrive:/saves")]
        chosen = FreshnessResolver(fake_remote).resolve(endpoints)
        assert chosen.is_remote
        assert fake_remote.listed == ["gdrive:/saves"]

    def test_unreachable_remote_is_skipped(self, tmp_path: Path, fake_remote: FakeRemote):
        local = _local(tmp_path, "primary", NOW - 500)
        endpoints = [
            parse_endpoint("gdrive:/never-created"),
            parse_endpoint("unknown:/x"),
            parse_endpoint(local),
        ]
        assert FreshnessResolver(fake_remote).resolve(endpoints).path == local

    def test_remote_without_tool_is_unreachable(self, tmp_path: Path):
        local = _local(tmp_path, "primary", NOW - 500)
        endpoints = [parse_endpoint("gdrive:/saves"), parse_endpoint(local)]
        assert FreshnessResolver().resolve(endpoints).path == local

    def test_survey_reports_unreachable_as_none(self, tmp_path: Path):
        local = _local(tmp_path, "primary", NOW - 500)
        survey = FreshnessResolver().survey(
            [parse_endpoint(local), parse_endpoint(str(tmp_path / "gone"))]
        )
        assert survey[0][1] is not None
        assert survey[1][1] is None
