"""Tests for logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from rich.logging import RichHandler

from saveguard.logs import setup_logging
from saveguard.models import LogLevel


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    root = logging.getLogger("saveguard")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = True
    root.setLevel(logging.NOTSET)


class TestSetupLogging:
    def test_console_level(self):
        root = setup_logging(LogLevel.DEBUG)
        console = [h for h in root.handlers if isinstance(h, RichHandler)]
        assert len(console) == 1
        assert console[0].level == logging.DEBUG
        assert not root.propagate

    def test_quiet_silences_console(self):
        root = setup_logging(LogLevel.QUIET)
        console = [h for h in root.handlers if isinstance(h, RichHandler)][0]
        assert console.level > logging.CRITICAL

    def test_log_file_receives_info(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "saveguard.log"
        setup_logging(LogLevel.QUIET, log_file)
        logging.getLogger("saveguard.session").info("Game launched")
        for handler in logging.getLogger("saveguard").handlers:
            handler.flush()
        text = log_file.read_text()
        assert "[saveguard.session] INFO: Game launched" in text

    def test_repeated_setup_replaces_handlers(self, tmp_path: Path):
        setup_logging(LogLevel.INFO, tmp_path / "a.log")
        root = setup_logging(LogLevel.INFO, tmp_path / "b.log")
        assert len(root.handlers) == 2

    def test_accepts_string_level(self):
        root = setup_logging("error")
        assert root.handlers[0].level == logging.ERROR
