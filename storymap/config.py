"""
Configuration management for StoryMap.

Handles persistent editor preferences:
- Appearance (dark mode)
- Sidebar (open state, width) and canvas-click behaviour
- Storage backend and data directory
- Log level

Preferences are stored in config.json next to the executable/project root.
Any setting can be overridden with a STORYMAP_<NAME> environment variable
(app.py loads a .env file first, so overrides can live there too).
"""

import json
import os
from pathlib import Path
from typing import Any, Optional

from storymap.paths import get_config_path, resolve_dir

ENV_PREFIX = "STORYMAP_"

DEFAULTS = {
    "dark_mode": False,
    "auto_open_sidebar": True,
    "close_objects_on_canvas_click": False,
    "left_sidebar_open": True,
    "right_sidebar_open": True,
    "right_sidebar_width": 300,
    "storage_backend": "file",
    "data_dir": None,
    "log_level": "INFO",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}


def load_config(config_path: Optional[Path] = None) -> dict:
    """Load configuration from config.json."""
    config_path = config_path or get_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError):
            return {}
    return {}


def save_config(config: dict, config_path: Optional[Path] = None) -> None:
    """Save configuration to config.json."""
    config_path = config_path or get_config_path()
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2)


def _coerce(value: str, default: Any) -> Any:
    if isinstance(default, bool):
        return value.strip().lower() in _TRUE_VALUES
    if isinstance(default, int):
        return int(value)
    return value


def get_setting(name: str, config_path: Optional[Path] = None) -> Any:
    """
    Get a single setting.

    Priority:
    1. Environment variable STORYMAP_<NAME>
    2. Stored in config.json
    3. Built-in default
    """
    if name not in DEFAULTS:
        raise KeyError(f"Unknown setting: {name}")

    env_value = os.environ.get(ENV_PREFIX + name.upper())
    if env_value is not None:
        return _coerce(env_value, DEFAULTS[name])

    config = load_config(config_path)
    if name in config:
        return config[name]
    return DEFAULTS[name]


def set_setting(name: str, value: Any, config_path: Optional[Path] = None) -> None:
    """Persist a single setting to config.json."""
    if name not in DEFAULTS:
        raise KeyError(f"Unknown setting: {name}")
    config = load_config(config_path)
    config[name] = value
    save_config(config, config_path)


def get_settings(config_path: Optional[Path] = None) -> dict:
    """Return every setting with overrides applied."""
    return {name: get_setting(name, config_path) for name in DEFAULTS}


def get_data_dir(config_path: Optional[Path] = None) -> Path:
    """Directory used by the file storage backend."""
    return resolve_dir(get_setting("data_dir", config_path))
