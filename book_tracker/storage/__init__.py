"""Storage module for book-tracker.

This module provides the persistent store for the book collection, the
key-value backends it writes through, and path management utilities.

Classes:
    BookStore: Loads and saves the full collection under one key.
    LoadResult: Outcome of BookStore.load().
    KeyValueBackend: Abstract base class for backends.
    FileBackend: File-per-key backend with atomic replacement.
    MemoryBackend: In-process dictionary backend.

Functions:
    get_config_dir: Get the main configuration directory.
    get_data_dir: Get the directory holding stored values.
    get_settings_path: Get the path to settings.json.
    ensure_config_dir: Create all required directories.
"""

from book_tracker.storage.backends import FileBackend, KeyValueBackend, MemoryBackend
from book_tracker.storage.paths import (
    ensure_config_dir,
    get_config_dir,
    get_data_dir,
    get_settings_path,
)
from book_tracker.storage.store import DEFAULT_STORAGE_KEY, BookStore, LoadResult

__all__ = [
    # Store
    "BookStore",
    "DEFAULT_STORAGE_KEY",
    "LoadResult",
    # Backends
    "FileBackend",
    "KeyValueBackend",
    "MemoryBackend",
    # Path functions
    "ensure_config_dir",
    "get_config_dir",
    "get_data_dir",
    "get_settings_path",
]
