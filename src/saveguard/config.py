"""
Configuration loading -- YAML on disk, flags on top.

    ~/.saveguard/config.yaml   ->  LaunchConfig  <-  CLI overrides
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from . import SAVEGUARD_HOME
from .errors import ConfigError
from .models import LaunchConfig

logger = logging.getLogger("saveguard.config")

CONFIG_FILE = "config.yaml"


def config_file(home: Optional[Path] = None) -> Path:
    return (home or Path(SAVEGUARD_HOME)).expanduser() / CONFIG_FILE


def load_config(
    home: Optional[Path] = None,
    path: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> LaunchConfig:
    """Load launcher configuration.

    Args:
        home: State directory. Defaults to ~/.saveguard.
        path: Explicit config file. Defaults to <home>/config.yaml.
        overrides: Values that replace file values (None entries are
            ignored so unset CLI flags don't clobber the file).

    Returns:
        Validated LaunchConfig with a parseable endpoint registry.

    Raises:
        ConfigError: On unreadable YAML, invalid fields, or a
            malformed endpoint spec.
    """
    cfg_path = (path or config_file(home)).expanduser()
    data: dict[str, Any] = {}
    if cfg_path.exists():
        try:
            data = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigError(f"Could not read {cfg_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"{cfg_path} must contain a mapping")
        logger.debug("Loaded config from %s", cfg_path)
    else:
        logger.debug("No config file at %s, using defaults", cfg_path)

    if home is not None:
        data.setdefault("home", str(home))

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        data[key] = value

    try:
        config = LaunchConfig(**data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc

    # Fail fast on malformed endpoint specs.
    config.registry()
    return config


def save_config(config: LaunchConfig, path: Optional[Path] = None) -> Path:
    """Persist configuration to disk as YAML.

    Returns:
        The file written.
    """
    cfg_path = path or config_file(config.home)
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json", exclude_none=True)
    cfg_path.write_text(
        yaml.dump(data, default_flow_style=False), encoding="utf-8"
    )
    logger.info("Saved config to %s", cfg_path)
    return cfg_path
