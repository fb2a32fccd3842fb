"""Runtime settings helpers for King's Sword."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .error_handling import ConfigurationError

_PACKAGE_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = _PACKAGE_ROOT / "config" / "default.yaml"


def get_project_root(override: Optional[str] = None) -> Path:
    """Return the root that relative data paths are resolved against."""
    if override:
        return Path(override).expanduser().resolve()
    env_root = os.environ.get("KINGSWORD_PROJECT_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()
    return Path.cwd().resolve()


def _deep_update(target: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``updates`` into ``target``."""
    for key, value in updates.items():
        if key in target and isinstance(target[key], dict) and isinstance(value, dict):
            _deep_update(target[key], value)
        else:
            target[key] = value
    return target


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read configuration {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration {path} must be a mapping")
    return data


def load_config(
    config_path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Return the packaged defaults merged with ``config_path`` and ``overrides``.

    ``KINGSWORD_DATA_DIR`` sits between the file and ``overrides``, so a
    command-line flag still wins over the environment.
    """
    config = _read_yaml(DEFAULT_CONFIG_PATH) if DEFAULT_CONFIG_PATH.exists() else {}
    if config_path is not None:
        _deep_update(config, _read_yaml(Path(config_path)))
    env_data_dir = os.environ.get("KINGSWORD_DATA_DIR")
    if env_data_dir:
        config["data_dir"] = env_data_dir
    if overrides:
        _deep_update(config, copy.deepcopy(overrides))
    return config


def get_data_dir(config: Optional[Dict[str, Any]] = None) -> Path:
    """Return the directory holding the database and the definition cache."""
    config = config or {}
    data_dir = Path(config.get("data_dir", ".cache/kingsword")).expanduser()
    if data_dir.is_absolute():
        return data_dir
    return get_project_root() / data_dir


def get_database_path(config: Optional[Dict[str, Any]] = None) -> Path:
    """Return the SQLite database path for ``config``."""
    config = config or {}
    database = Path(config.get("database", "library.db"))
    if database.is_absolute():
        return database
    return get_data_dir(config) / database
