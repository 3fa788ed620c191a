"""Persistent store for the book collection.

The whole collection is stored as one JSON array under a single key of a
key-value backend. There are no per-book keys, no envelope and no version
field: the stored value is exactly `[{"id": ..., "title": ..., ...}, ...]`.

Both operations fail soft. load() reports problems through
LoadResult.error and save_all() returns a SaveFailure instead of raising.

Classes:
    LoadResult: Books read from storage plus the failure, if any.
    BookStore: Loads and saves the full collection.
"""

import asyncio
import json
from collections.abc import Sequence
from dataclasses import dataclass

from book_tracker.errors import LoadFailure, SaveFailure
from book_tracker.logging_config import get_logger
from book_tracker.models import Book
from book_tracker.storage.backends import KeyValueBackend

logger = get_logger(__name__)

DEFAULT_STORAGE_KEY = "books"


@dataclass(frozen=True)
class LoadResult:
    """Outcome of BookStore.load().

    Attributes:
        books: Loaded books in stored order; empty on failure.
        error: The failure, or None when the load succeeded.
    """

    books: tuple[Book, ...] = ()
    error: LoadFailure | None = None

    @property
    def ok(self) -> bool:
        """True when the load succeeded (including an empty library)."""
        return self.error is None


class BookStore:
    """Loads and saves the full book collection under one storage key.

    Backend calls run in a worker thread so the event loop only suspends at
    this boundary. save_all() serializes the snapshot before suspending, so
    the stored value reflects the collection at call time even if several
    saves overlap.

    Example:
        >>> store = BookStore(FileBackend(get_data_dir()))
        >>> result = await store.load()
        >>> failure = await store.save_all(result.books)
    """

    def __init__(self, backend: KeyValueBackend, key: str = DEFAULT_STORAGE_KEY) -> None:
        """Initialize the store.

        Args:
            backend: Key-value backend holding the raw JSON text.
            key: Storage key for the collection.
        """
        self.backend = backend
        self.key = key

    async def load(self) -> LoadResult:
        """Read the stored collection.

        A key that was never written is an empty library, not a failure.
        Unreadable storage (including bytes that are not UTF-8 and keys the
        backend refuses), invalid or too deeply nested JSON, a non-array
        value, or a record that fails validation all produce an empty result
        with a LoadFailure.

        Returns:
            LoadResult with the books, or with the failure.
        """
        try:
            raw = await asyncio.to_thread(self.backend.get_item, self.key)
        except (OSError, ValueError) as e:
            logger.error("Failed to read books from '%s': %s", self.key, e)
            return LoadResult(error=LoadFailure(self.key, e))

        if raw is None:
            logger.info("No stored books under '%s', starting with an empty library", self.key)
            return LoadResult()

        try:
            books = self.deserialize(raw)
        except (ValueError, RecursionError) as e:
            logger.error("Failed to parse books from '%s': %s", self.key, e)
            return LoadResult(error=LoadFailure(self.key, e))

        logger.debug("Loaded %d books from '%s'", len(books), self.key)
        return LoadResult(books=books)

    async def save_all(self, books: Sequence[Book]) -> SaveFailure | None:
        """Replace the stored collection with the given books.

        Args:
            books: Full collection to store, in display order.

        Returns:
            None on success, otherwise the SaveFailure.
        """
        payload = self.serialize(books)
        try:
            await asyncio.to_thread(self.backend.set_item, self.key, payload)
        except (OSError, ValueError) as e:
            logger.error("Failed to save %d books to '%s': %s", len(books), self.key, e)
            return SaveFailure(self.key, e)
        logger.debug("Saved %d books to '%s'", len(books), self.key)
        return None

    @staticmethod
    def serialize(books: Sequence[Book]) -> str:
        """Serialize books to the stored JSON array."""
        return json.dumps([book.to_storage() for book in books], indent=2, ensure_ascii=False)

    @staticmethod
    def deserialize(raw: str) -> tuple[Book, ...]:
        """Parse the stored JSON array into books.

        Raises:
            ValueError: On invalid JSON, a non-array value, or an invalid
                record (pydantic.ValidationError is a ValueError).
        """
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError(
                f"Expected a JSON array of books, found {type(data).__name__}"
            )
        return tuple(Book.model_validate(item) for item in data)
