"""
Path resolution for StoryMap.

Relative locations are anchored at the application directory: the project
root in development, the executable's folder in a frozen (PyInstaller)
build. Saved canvases (db/) and config.json live there, never inside the
bundle.
"""

import sys
from pathlib import Path
from typing import Optional, Union

DB_DIR_NAME = "db"
CONFIG_FILE_NAME = "config.json"


def is_frozen() -> bool:
    return bool(getattr(sys, 'frozen', False))


def get_app_dir() -> Path:
    if is_frozen():
        return Path(sys.executable).parent
    return Path(__file__).parent.parent


def get_db_dir() -> Path:
    """Default directory for the file storage backend."""
    return get_app_dir() / DB_DIR_NAME


def get_config_path() -> Path:
    return get_app_dir() / CONFIG_FILE_NAME


def resolve_dir(configured: Optional[Union[str, Path]]) -> Path:
    """
    Turn a configured directory into an absolute path.

    Empty values fall back to the default db directory; "~" is expanded and
    relative paths are taken relative to the application directory.
    """
    if not configured:
        return get_db_dir()
    path = Path(configured).expanduser()
    if not path.is_absolute():
        path = get_app_dir() / path
    return path
