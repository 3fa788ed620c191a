"""Book registry for book-tracker.

BookRegistry owns the canonical in-memory collection and mirrors every
change to a BookStore. It is constructed explicitly and handed to whatever
presents the library (the CLI in this package); there is no global instance.

Write-through policy:
    Every mutation that changes the collection updates memory first and then
    saves the full collection. There is no batching, debouncing or write
    queue, so each single-field edit costs one full save. A failed save is
    recorded in `last_error`; the in-memory change is kept and nothing is
    raised. The next mutation's save is the only retry.

Absent ids:
    update/remove/set_status/set_progress on an id that is not in the
    collection do nothing: no save, no event, no error.

Classes:
    CollectionChanged: Event delivered to subscribers after a change.
    BookRegistry: The registry.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from book_tracker.errors import TrackerError
from book_tracker.logging_config import get_logger
from book_tracker.models import Book, BookDraft, BookStatus, now_millis
from book_tracker.storage.store import BookStore
from book_tracker.telemetry import traced

logger = get_logger(__name__)


class ChangeKind(str, Enum):
    """What caused a CollectionChanged event."""

    LOADED = "loaded"
    CREATED = "created"
    UPDATED = "updated"
    REMOVED = "removed"
    STATUS = "status"
    PROGRESS = "progress"


@dataclass(frozen=True)
class CollectionChanged:
    """Event delivered to subscribers after the collection changed.

    Attributes:
        kind: What caused the change.
        book_id: Affected book, or None for a load.
        books: Snapshot of the collection after the change.
        persisted: False if the save (or load) that followed failed.
    """

    kind: ChangeKind
    book_id: str | None
    books: tuple[Book, ...]
    persisted: bool


Listener = Callable[[CollectionChanged], None]


def generate_book_id() -> str:
    """Generate an opaque unique book ID."""
    return uuid.uuid4().hex


class BookRegistry:
    """In-memory book collection with write-through persistence.

    All mutators are coroutines that suspend only while the store saves.
    Memory is updated before that suspension point, so operations issued in
    sequence by one caller change the collection in issue order.

    Attributes:
        store: Persistent store receiving a full snapshot after each change.

    Example:
        >>> registry = BookRegistry(BookStore(FileBackend(get_data_dir())))
        >>> await registry.initialize()
        >>> book = await registry.create(BookDraft(title="Dune", ...))
        >>> await registry.set_status(book.id, BookStatus.READING)
        >>> registry.find_by_id(book.id).status
        <BookStatus.READING: 'Reading'>
    """

    def __init__(
        self,
        store: BookStore,
        clock: Callable[[], int] = now_millis,
        id_factory: Callable[[], str] = generate_book_id,
    ) -> None:
        """Initialize an empty, not-yet-ready registry.

        Args:
            store: Persistent store for the collection.
            clock: Returns the current time in epoch milliseconds.
            id_factory: Returns a fresh book ID.
        """
        self.store = store
        self._clock = clock
        self._id_factory = id_factory
        self._books: tuple[Book, ...] = ()
        self._ready = False
        self._last_error: TrackerError | None = None
        self._listeners: list[Listener] = []
        self._load_task: asyncio.Future[None] | None = None

    # =========================================================================
    # State
    # =========================================================================

    @property
    def books(self) -> tuple[Book, ...]:
        """Current collection in insertion order (an immutable snapshot)."""
        return self._books

    @property
    def ready(self) -> bool:
        """True once the initial load has settled, successfully or not."""
        return self._ready

    @property
    def last_error(self) -> TrackerError | None:
        """Most recent load or save failure, kept until clear_error()."""
        return self._last_error

    def clear_error(self) -> None:
        """Dismiss the last reported failure."""
        self._last_error = None

    # =========================================================================
    # Subscription
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for CollectionChanged events.

        Returns:
            A callable that unsubscribes the listener.
        """
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        """Remove a listener. Unknown listeners are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, kind: ChangeKind, book_id: str | None, persisted: bool) -> None:
        event = CollectionChanged(kind, book_id, self._books, persisted)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener %r failed handling %s event", listener, kind.value)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> None:
        """Load the collection from the store.

        Runs the load once per registry. Later or concurrent calls wait for
        that same load and do nothing else. On failure the collection is
        empty and `last_error` holds the LoadFailure; `ready` becomes True
        either way.
        """
        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._load())
        await self._load_task

    @traced("registry.initialize")
    async def _load(self) -> None:
        result = await self.store.load()
        if result.error is not None:
            self._last_error = result.error
            self._books = ()
            logger.warning("Starting with an empty library: %s", result.error)
        else:
            self._books = result.books
            logger.info("Loaded %d books", len(result.books))
        self._ready = True
        self._notify(ChangeKind.LOADED, None, result.ok)

    # =========================================================================
    # Mutations
    # =========================================================================

    @traced("registry.create")
    async def create(self, draft: BookDraft) -> Book:
        """Add a new book.

        Assigns a fresh id, dateAdded = now and status To Read, appends the
        book and saves. A failed save keeps the book in memory.

        Args:
            draft: Validated creation fields (pages > 0 is enforced there).

        Returns:
            The created book.
        """
        book = Book(
            id=self._id_factory(),
            title=draft.title,
            author=draft.author,
            cover_url=draft.cover_url,
            description=draft.description,
            genres=draft.genres,
            pages=draft.pages,
            status=BookStatus.TO_READ,
            date_added=self._clock(),
        )
        self._books = (*self._books, book)
        logger.info("Added book '%s' (%s)", book.title, book.id)
        await self._commit(ChangeKind.CREATED, book.id)
        return book

    @traced("registry.update")
    async def update(self, book: Book) -> None:
        """Replace the stored book with the same id wholesale."""
        if self._replace(book.id, lambda _: book) is None:
            return
        logger.info("Updated book '%s'", book.id)
        await self._commit(ChangeKind.UPDATED, book.id)

    @traced("registry.remove")
    async def remove(self, book_id: str) -> None:
        """Remove a book permanently."""
        if self.find_by_id(book_id) is None:
            logger.debug("Remove: book '%s' not found, nothing to do", book_id)
            return
        self._books = tuple(b for b in self._books if b.id != book_id)
        logger.info("Removed book '%s'", book_id)
        await self._commit(ChangeKind.REMOVED, book_id)

    @traced("registry.set_status")
    async def set_status(self, book_id: str, status: BookStatus | str) -> None:
        """Change only the reading status of a book.

        Raises:
            ValueError: If status is not To Read, Reading or Completed. The
                collection is left untouched.
        """
        new_status = BookStatus.parse(status)
        if self._replace(book_id, lambda b: b.model_copy(update={"status": new_status})) is None:
            return
        logger.info("Set status of '%s' to %s", book_id, new_status.value)
        await self._commit(ChangeKind.STATUS, book_id)

    @traced("registry.set_progress")
    async def set_progress(self, book_id: str, current_page: int) -> None:
        """Record the current page of a book.

        The page is stored as given; callers check it against the book's
        page count first (see models.validate_progress).
        """
        updated = self._replace(
            book_id, lambda b: b.model_copy(update={"current_page": current_page})
        )
        if updated is None:
            return
        logger.info("Set progress of '%s' to page %d of %d", book_id, current_page, updated.pages)
        await self._commit(ChangeKind.PROGRESS, book_id)

    def _replace(self, book_id: str, change: Callable[[Book], Book]) -> Book | None:
        """Swap the book with book_id for change(book). Returns the new book or None."""
        for index, existing in enumerate(self._books):
            if existing.id == book_id:
                updated = change(existing)
                self._books = (*self._books[:index], updated, *self._books[index + 1 :])
                return updated
        logger.debug("Book '%s' not found, nothing to do", book_id)
        return None

    async def _commit(self, kind: ChangeKind, book_id: str) -> None:
        """Save the current snapshot, record any failure, then notify."""
        failure = await self.store.save_all(self._books)
        if failure is not None:
            self._last_error = failure
            logger.warning("Change to '%s' kept in memory but not saved: %s", book_id, failure)
        self._notify(kind, book_id, failure is None)

    # =========================================================================
    # Queries
    # =========================================================================

    def find_by_id(self, book_id: str) -> Book | None:
        """Get a book by id, or None."""
        for book in self._books:
            if book.id == book_id:
                return book
        return None

    def filter_by_genre(self, genre: str | None) -> tuple[Book, ...]:
        """Books tagged with genre, in collection order.

        No genre (None or "") returns the whole collection.
        """
        if not genre:
            return self._books
        return tuple(book for book in self._books if genre in book.genres)

    def filter_by_status(self, status: BookStatus | str) -> tuple[Book, ...]:
        """Books with the given status, in collection order."""
        wanted = BookStatus.parse(status)
        return tuple(book for book in self._books if book.status == wanted)

    def all_genres(self) -> list[str]:
        """Sorted unique genres across the collection."""
        return sorted({genre for book in self._books for genre in book.genres})
