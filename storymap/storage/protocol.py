"""
KeyValueStore Protocol Definition.

The engine persists exactly two opaque documents (the graph and the view)
through a string key-value store. Both JsonFileStore (local files) and
MemoryStore (tests, throwaway sessions) conform to this protocol.
"""

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Abstract protocol for persistence backends.

    Last write wins; no durability guarantee beyond that is assumed.
    """

    @property
    def backend_type(self) -> str:
        """Return the backend type identifier ('file' or 'memory')."""
        ...

    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under key.

        Returns:
            The stored string, or None if nothing is stored
        """
        ...

    def set(self, key: str, value: str) -> None:
        """
        Store value under key, replacing any previous value.

        Args:
            key: Logical document name (e.g. 'canvasData')
            value: Serialized document
        """
        ...

    def delete(self, key: str) -> None:
        """Remove key if present."""
        ...
