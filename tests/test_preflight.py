"""Tests for remote preflight checks."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from conftest import FakeRemote
from saveguard.errors import ConfigError, RemoteToolError
from saveguard.preflight import check_remotes, ensure_remotes
from saveguard.sync.models import build_registry


class TestCheckRemotes:
    def test_local_only(self):
        report = check_remotes(build_registry(["/saves"]), None)
        assert report.ok
        assert report.remote_endpoints == 0

    def test_all_configured(self, fake_remote: FakeRemote):
        report = check_remotes(build_registry(["/saves", "gdrive:/hk"]), fake_remote)
        assert report.ok
        assert report.configured_remotes == {"gdrive"}

    def test_missing_remote(self, fake_remote: FakeRemote):
        report = check_remotes(build_registry(["gdrive:/hk", "dropbox:/hk"]), fake_remote)
        assert not report.ok
        assert report.missing_remotes == ["dropbox"]

    def test_tool_unavailable(self):
        tool = MagicMock()
        tool.available.return_value = False
        report = check_remotes(build_registry(["gdrive:/hk"]), tool)
        assert not report.tool_available
        assert not report.ok

    def test_listing_failure(self):
        tool = MagicMock()
        tool.available.return_value = True
        tool.list_remotes.side_effect = RemoteToolError("config unreadable")
        report = check_remotes(build_registry(["gdrive:/hk"]), tool)
        assert report.missing_remotes == ["gdrive"]


class TestEnsureRemotes:
    def test_passes(self, fake_remote: FakeRemote):
        assert ensure_remotes(build_registry(["gdrive:/hk"]), fake_remote).ok

    def test_missing_tool(self):
        with pytest.raises(ConfigError, match="rclone was not found"):
            ensure_remotes(build_registry(["gdrive:/hk"]), None)

    def test_unconfigured_remote(self, fake_remote: FakeRemote):
        with pytest.raises(ConfigError, match="saveguard auth"):
            ensure_remotes(build_registry(["dropbox:/hk"]), fake_remote)
