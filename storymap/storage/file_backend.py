"""
File-based Storage Backend for StoryMap.

Implements the KeyValueStore protocol with one JSON file per key.

Structure:
- {data_dir}/canvasData.json: graph document
- {data_dir}/canvasViewState.json: view document
"""

import logging
import re
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r'^[A-Za-z0-9_.-]+$')


class JsonFileStore:
    """Local file storage, one UTF-8 file per key."""

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def backend_type(self) -> str:
        return "file"

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.data_dir / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read {path}: {e}")
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        # Write to a sibling file first so a crash never leaves half a document
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(value, encoding="utf-8")
        tmp_path.replace(path)

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()
