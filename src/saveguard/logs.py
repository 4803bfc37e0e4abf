"""Logging setup: rich console handler plus a plain log file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .models import LogLevel

_LEVELS = {
    LogLevel.QUIET: logging.CRITICAL + 10,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.WARN: logging.WARNING,
    LogLevel.INFO: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
}

FILE_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def setup_logging(
    level: LogLevel = LogLevel.WARN,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """Configure the ``saveguard`` logger tree.

    Args:
        level: Console verbosity. QUIET silences the console only.
        log_file: Optional file that always receives INFO and above.

    Returns:
        The configured ``saveguard`` logger.
    """
    root = logging.getLogger("saveguard")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console_level = _LEVELS[LogLevel(level)]
    console = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
    )
    console.setLevel(console_level)
    root.addHandler(console)

    root_level = console_level
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        file_handler.setLevel(logging.INFO)
        root.addHandler(file_handler)
        root_level = min(root_level, logging.INFO)

    root.setLevel(root_level)
    root.propagate = False
    return root
