"""
Storage backend abstraction for StoryMap.

Supports multiple key-value backends:
- JsonFileStore: Local JSON files (default)
- MemoryStore: In-process dict
"""

from storymap.storage.protocol import KeyValueStore
from storymap.storage.file_backend import JsonFileStore
from storymap.storage.memory_backend import MemoryStore
from storymap.storage.factory import create_store

__all__ = [
    'KeyValueStore',
    'JsonFileStore',
    'MemoryStore',
    'create_store',
]
