"""
Backend Factory for StoryMap.

Creates the appropriate key-value store from configuration.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from storymap.storage.file_backend import JsonFileStore
from storymap.storage.memory_backend import MemoryStore
from storymap.storage.protocol import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = "file"

BACKEND_TYPES = ("file", "memory")


def create_store(
    backend: Optional[str] = None,
    data_dir: Optional[Union[str, Path]] = None,
) -> KeyValueStore:
    """
    Create a key-value store instance.

    Args:
        backend: 'file' or 'memory' (defaults to 'file')
        data_dir: Directory for the file backend

    Returns:
        KeyValueStore instance (JsonFileStore or MemoryStore)
    """
    backend_type = backend or DEFAULT_BACKEND
    if backend_type not in BACKEND_TYPES:
        raise ValueError(f"Unknown storage backend '{backend_type}'. Valid: {BACKEND_TYPES}")

    if backend_type == "memory":
        logger.info("Using in-memory storage; nothing will be written to disk")
        return MemoryStore()

    if data_dir is None:
        raise ValueError("The file storage backend needs a data_dir")
    logger.info(f"Using file storage in {data_dir}")
    return JsonFileStore(data_dir)
