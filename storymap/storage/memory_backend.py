"""In-memory Storage Backend, used for tests and sessions that should not touch disk."""

from typing import Dict, Optional


class MemoryStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    @property
    def backend_type(self) -> str:
        return "memory"

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)
