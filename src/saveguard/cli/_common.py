"""Shared helpers for the CLI command modules."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console

from .. import SAVEGUARD_HOME
from ..config import load_config
from ..errors import SaveGuardError
from ..models import LaunchConfig

console = Console()
logger = logging.getLogger("saveguard.cli")

home_option = click.option(
    "--home", default=SAVEGUARD_HOME, type=click.Path(),
    help="State directory (config, lock, logs).",
)
config_option = click.option(
    "--config-path", type=click.Path(), default=None,
    help="Config file. Defaults to <home>/config.yaml.",
)


def fail(exc: Exception) -> None:
    """Print a fatal error and exit non-zero."""
    kind = type(exc).__name__
    console.print(f"\n  [bold red]{kind}:[/] {exc}\n")
    sys.exit(1)


def load_or_exit(
    home: str,
    config_path: Optional[str] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> LaunchConfig:
    """Load configuration, exiting with a readable error on failure."""
    try:
        return load_config(
            Path(home).expanduser(),
            Path(config_path).expanduser() if config_path else None,
            overrides,
        )
    except SaveGuardError as exc:
        fail(exc)
        raise  # unreachable, keeps type checkers happy
