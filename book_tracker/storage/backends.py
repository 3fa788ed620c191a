"""Key-value backends for book-tracker.

A backend stores raw text under string keys. BookStore layers JSON
serialization of the collection on top of a backend.

Classes:
    KeyValueBackend: Abstract base class for backends.
    FileBackend: One file per key in a directory, replaced atomically.
    MemoryBackend: Process-local dictionary, used for tests and dry runs.
"""

import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from book_tracker.logging_config import get_logger
from book_tracker.models import STORAGE_KEY_PATTERN

logger = get_logger(__name__)

KEY_PATTERN = re.compile(STORAGE_KEY_PATTERN)


class KeyValueBackend(ABC):
    """Abstract base class for key-value backends.

    Implementations may raise OSError (or subclasses) on I/O failure;
    BookStore turns those into LoadFailure/SaveFailure.
    """

    @abstractmethod
    def get_item(self, key: str) -> str | None:
        """Return the text stored under key, or None if the key was never set."""
        ...

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store text under key, replacing any previous value."""
        ...


class FileBackend(KeyValueBackend):
    """Stores each key as <directory>/<key>.json.

    Writes go to a temporary file in the same directory which then replaces
    the target, so readers never observe a half-written value.

    Example:
        >>> backend = FileBackend(Path("~/.config/book-tracker/data").expanduser())
        >>> backend.set_item("books", "[]")
        >>> backend.get_item("books")
        '[]'
    """

    def __init__(self, directory: Path) -> None:
        """Initialize the backend.

        Args:
            directory: Directory holding the value files. Created on first write.
        """
        self.directory = directory

    def path_for(self, key: str) -> Path:
        """Get the file path for a key.

        Raises:
            ValueError: If the key contains characters unsafe for a file name.
        """
        if not KEY_PATTERN.match(key):
            raise ValueError(
                f"Invalid storage key: '{key}'. "
                f"Use letters, digits, '.', '_' or '-' only, e.g. 'books'."
            )
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> str | None:
        path = self.path_for(key)
        try:
            with open(path, encoding="utf-8") as f:
                value = f.read()
        except FileNotFoundError:
            logger.debug("No stored value for key '%s' at %s", key, path)
            return None
        logger.debug("Read %d bytes for key '%s' from %s", len(value), key, path)
        return value

    def set_item(self, key: str, value: str) -> None:
        path = self.path_for(key)
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote %d bytes for key '%s' to %s", len(value), key, path)


class MemoryBackend(KeyValueBackend):
    """Keeps values in a dictionary for the lifetime of the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value
