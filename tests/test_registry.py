"""Tests for BookRegistry: mutations, write-through persistence and events."""

import asyncio
import json
from pathlib import Path

import pytest

from book_tracker.errors import LoadFailure, SaveFailure
from book_tracker.models import BookStatus
from book_tracker.registry import BookRegistry, ChangeKind, CollectionChanged
from book_tracker.storage import BookStore, FileBackend, MemoryBackend
from tests.conftest import FIXED_NOW, FlakyBackend, make_draft, sequential_ids


def stored_ids(backend: FlakyBackend) -> list[str]:
    """IDs in the backend's current stored value."""
    return [b["id"] for b in json.loads(backend.items["books"])]


def ready_registry(registry: BookRegistry) -> BookRegistry:
    """Initialize the registry and return it."""
    asyncio.run(registry.initialize())
    return registry


class TestInitialize:
    """Tests for the initial load."""

    def test_not_ready_before_initialize(self, registry: BookRegistry) -> None:
        """A fresh registry is empty and not ready."""
        assert registry.ready is False
        assert registry.books == ()
        assert registry.last_error is None

    def test_loads_stored_books(self, store: BookStore) -> None:
        """Stored books become the collection, in stored order."""
        seed = BookRegistry(store, id_factory=sequential_ids())
        asyncio.run(seed.create(make_draft(title="First")))
        asyncio.run(seed.create(make_draft(title="Second")))

        registry = ready_registry(BookRegistry(store))

        assert registry.ready is True
        assert [b.title for b in registry.books] == ["First", "Second"]
        assert registry.last_error is None

    def test_load_failure_sets_error_and_empty(self) -> None:
        """Corrupt storage: ready, empty, and LoadFailure recorded."""
        registry = ready_registry(BookRegistry(BookStore(MemoryBackend({"books": "{oops"}))))

        assert registry.ready is True
        assert registry.books == ()
        assert isinstance(registry.last_error, LoadFailure)

    def test_undecodable_file_still_becomes_ready(self, tmp_path: Path) -> None:
        """A non-UTF-8 library file leaves the registry ready, empty and in error."""
        (tmp_path / "books.json").write_bytes(b"[\xff\xfe]")

        registry = ready_registry(BookRegistry(BookStore(FileBackend(tmp_path))))

        assert registry.ready is True
        assert registry.books == ()
        assert isinstance(registry.last_error, LoadFailure)

    def test_initialize_is_idempotent(self, backend: FlakyBackend, registry: BookRegistry) -> None:
        """A second initialize does not reload over in-memory state."""
        asyncio.run(registry.initialize())
        asyncio.run(registry.create(make_draft()))
        backend.items["books"] = "[]"

        asyncio.run(registry.initialize())

        assert len(registry.books) == 1

    def test_concurrent_initialize_loads_once(self, registry: BookRegistry) -> None:
        """Concurrent callers share one load and one LOADED event."""
        events: list[CollectionChanged] = []
        registry.subscribe(events.append)

        async def run() -> None:
            await asyncio.gather(registry.initialize(), registry.initialize())

        asyncio.run(run())

        assert [e.kind for e in events] == [ChangeKind.LOADED]


class TestCreate:
    """Tests for adding books."""

    def test_scenario_create_dune(self, registry: BookRegistry) -> None:
        """The registry assigns id, status To Read and dateAdded; lookup finds it."""
        ready_registry(registry)

        book = asyncio.run(registry.create(make_draft()))

        assert book.id == "book-1"
        assert book.status is BookStatus.TO_READ
        assert book.date_added == FIXED_NOW
        assert book.title == "Dune"
        assert book.genres == ("SciFi",)
        assert book.current_page is None
        assert registry.find_by_id(book.id) == book

    def test_ids_are_unique(self, store: BookStore) -> None:
        """Default ids are pairwise distinct even when created in the same millisecond."""
        registry = ready_registry(BookRegistry(store, clock=lambda: FIXED_NOW))

        async def create_many() -> list[str]:
            return [(await registry.create(make_draft(title=f"T{i}"))).id for i in range(50)]

        ids = asyncio.run(create_many())

        assert len(set(ids)) == 50

    def test_create_appends_and_persists(
        self, backend: FlakyBackend, registry: BookRegistry
    ) -> None:
        """The full collection is written after each create."""
        ready_registry(registry)
        asyncio.run(registry.create(make_draft(title="One")))
        asyncio.run(registry.create(make_draft(title="Two")))

        assert [b.title for b in registry.books] == ["One", "Two"]
        assert len(backend.writes) == 2
        assert stored_ids(backend) == ["book-1", "book-2"]

    def test_create_without_genres_is_accepted(self, registry: BookRegistry) -> None:
        """Requiring a genre is the caller's job."""
        ready_registry(registry)
        book = asyncio.run(registry.create(make_draft(genres=())))
        assert book.genres == ()

    def test_save_failure_keeps_book(self, backend: FlakyBackend, registry: BookRegistry) -> None:
        """No rollback: the book stays in memory and the error is recorded."""
        ready_registry(registry)
        backend.fail_writes = True

        book = asyncio.run(registry.create(make_draft()))

        assert registry.find_by_id(book.id) == book
        assert isinstance(registry.last_error, SaveFailure)
        assert "books" not in backend.items


class TestUpdate:
    """Tests for wholesale replacement."""

    def test_update_replaces_book(self, backend: FlakyBackend, registry: BookRegistry) -> None:
        """Every field except id can change; position is kept."""
        ready_registry(registry)
        first = asyncio.run(registry.create(make_draft(title="First")))
        asyncio.run(registry.create(make_draft(title="Second")))

        changed = first.model_copy(update={"title": "Renamed", "rating": 5, "pages": 10})
        asyncio.run(registry.update(changed))

        assert registry.books[0] == changed
        assert registry.books[1].title == "Second"
        assert json.loads(backend.items["books"])[0]["rating"] == 5

    def test_update_absent_is_noop(self, backend: FlakyBackend, registry: BookRegistry) -> None:
        """Unknown ids change nothing and write nothing."""
        ready_registry(registry)
        book = asyncio.run(registry.create(make_draft()))
        before = registry.books

        asyncio.run(registry.update(book.model_copy(update={"id": "ghost"})))

        assert registry.books == before
        assert len(backend.writes) == 1
        assert registry.last_error is None


class TestRemove:
    """Tests for deletion."""

    def test_scenario_remove(self, backend: FlakyBackend, registry: BookRegistry) -> None:
        """A removed book is gone from memory and from the stored snapshot."""
        ready_registry(registry)
        dune = asyncio.run(registry.create(make_draft()))
        other = asyncio.run(registry.create(make_draft(title="Emma")))

        asyncio.run(registry.remove(dune.id))

        assert registry.find_by_id(dune.id) is None
        assert registry.books == (other,)
        assert stored_ids(backend) == [other.id]

    def test_remove_absent_is_noop(self, backend: FlakyBackend, registry: BookRegistry) -> None:
        """Unknown ids change nothing, write nothing and set no error."""
        ready_registry(registry)
        asyncio.run(registry.create(make_draft()))
        before = registry.books

        asyncio.run(registry.remove("ghost"))

        assert registry.books == before
        assert len(backend.writes) == 1
        assert registry.last_error is None

    def test_remove_save_failure_keeps_removal(
        self, backend: FlakyBackend, registry: BookRegistry
    ) -> None:
        """Memory and storage diverge until the next successful save."""
        ready_registry(registry)
        book = asyncio.run(registry.create(make_draft()))
        backend.fail_writes = True

        asyncio.run(registry.remove(book.id))

        assert registry.books == ()
        assert stored_ids(backend) == [book.id]
        assert isinstance(registry.last_error, SaveFailure)


class TestSetStatus:
    """Tests for status changes."""

    @pytest.mark.parametrize("status", list(BookStatus))
    def test_set_status_replaces_only_status(
        self, registry: BookRegistry, status: BookStatus
    ) -> None:
        """Each of the three statuses fully replaces the previous one."""
        ready_registry(registry)
        book = asyncio.run(registry.create(make_draft()))
        asyncio.run(registry.set_status(book.id, BookStatus.COMPLETED))

        asyncio.run(registry.set_status(book.id, status))

        updated = registry.find_by_id(book.id)
        assert updated is not None
        assert updated.status is status
        assert updated.model_copy(update={"status": book.status}) == book

    def test_set_status_accepts_strings(self, registry: BookRegistry) -> None:
        """Stored values and slugs are coerced."""
        ready_registry(registry)
        book = asyncio.run(registry.create(make_draft()))

        asyncio.run(registry.set_status(book.id, "Reading"))
        assert registry.books[0].status is BookStatus.READING
        asyncio.run(registry.set_status(book.id, "completed"))
        assert registry.books[0].status is BookStatus.COMPLETED

    def test_set_status_rejects_unknown(
        self, backend: FlakyBackend, registry: BookRegistry
    ) -> None:
        """Other values raise before anything changes."""
        ready_registry(registry)
        book = asyncio.run(registry.create(make_draft()))

        with pytest.raises(ValueError):
            asyncio.run(registry.set_status(book.id, "Abandoned"))

        assert registry.books == (book,)
        assert len(backend.writes) == 1

    def test_set_status_absent_is_noop(
        self, backend: FlakyBackend, registry: BookRegistry
    ) -> None:
        """Unknown ids change nothing."""
        ready_registry(registry)
        asyncio.run(registry.set_status("ghost", BookStatus.READING))
        assert registry.books == ()
        assert backend.writes == []
        assert registry.last_error is None


class TestSetProgress:
    """Tests for reading progress."""

    def test_scenario_progress(self, backend: FlakyBackend, registry: BookRegistry) -> None:
        """Page 200 of 412 is stored exactly and displays as 49%."""
        ready_registry(registry)
        book = asyncio.run(registry.create(make_draft()))

        asyncio.run(registry.set_progress(book.id, 200))

        updated = registry.find_by_id(book.id)
        assert updated is not None
        assert updated.current_page == 200
        assert updated.progress_percent() == 49
        assert json.loads(backend.items["books"])[0]["currentPage"] == 200

    @pytest.mark.parametrize("page", [0, 1, 411, 412])
    def test_progress_within_bounds(self, registry: BookRegistry, page: int) -> None:
        """Any page in 0..pages is recorded as given."""
        ready_registry(registry)
        book = asyncio.run(registry.create(make_draft()))
        asyncio.run(registry.set_progress(book.id, page))
        assert registry.books[0].current_page == page

    def test_progress_is_not_range_checked(self, registry: BookRegistry) -> None:
        """Out-of-range pages are the caller's responsibility."""
        ready_registry(registry)
        book = asyncio.run(registry.create(make_draft()))
        asyncio.run(registry.set_progress(book.id, 999))
        assert registry.books[0].current_page == 999
        assert registry.last_error is None

    def test_set_progress_absent_is_noop(
        self, backend: FlakyBackend, registry: BookRegistry
    ) -> None:
        """Unknown ids change nothing."""
        ready_registry(registry)
        asyncio.run(registry.create(make_draft()))
        before = registry.books

        asyncio.run(registry.set_progress("ghost", 10))

        assert registry.books == before
        assert len(backend.writes) == 1
        assert registry.last_error is None


class TestQueries:
    """Tests for lookups and derived views."""

    @pytest.fixture
    def shelf(self, registry: BookRegistry) -> BookRegistry:
        """Registry holding four books across genres and statuses."""
        ready_registry(registry)

        async def fill() -> None:
            await registry.create(make_draft(title="Dune", genres=("SciFi", "Classic")))
            await registry.create(make_draft(title="Emma", genres=("Romance", "Classic")))
            await registry.create(make_draft(title="Neuromancer", genres=("SciFi",)))
            await registry.create(make_draft(title="Untagged", genres=()))
            await registry.set_status("book-3", BookStatus.READING)

        asyncio.run(fill())
        return registry

    def test_filter_by_genre(self, shelf: BookRegistry) -> None:
        """Only books tagged with the genre, in collection order."""
        assert [b.title for b in shelf.filter_by_genre("SciFi")] == ["Dune", "Neuromancer"]
        assert [b.title for b in shelf.filter_by_genre("Classic")] == ["Dune", "Emma"]
        assert shelf.filter_by_genre("Horror") == ()

    def test_filter_by_no_genre_is_everything(self, shelf: BookRegistry) -> None:
        """None (or empty) returns the collection unchanged."""
        assert shelf.filter_by_genre(None) == shelf.books
        assert shelf.filter_by_genre("") == shelf.books

    def test_filter_by_status(self, shelf: BookRegistry) -> None:
        """Status view keeps collection order."""
        assert [b.title for b in shelf.filter_by_status(BookStatus.READING)] == ["Neuromancer"]
        assert len(shelf.filter_by_status("to-read")) == 3

    def test_all_genres_sorted_unique(self, shelf: BookRegistry) -> None:
        """The genre filter bar lists each genre once, sorted."""
        assert shelf.all_genres() == ["Classic", "Romance", "SciFi"]

    def test_find_by_id(self, shelf: BookRegistry) -> None:
        """Lookup by id, None when absent."""
        book = shelf.find_by_id("book-2")
        assert book is not None
        assert book.title == "Emma"
        assert shelf.find_by_id("ghost") is None


class TestErrors:
    """Tests for error reporting."""

    def test_error_persists_until_cleared(
        self, backend: FlakyBackend, registry: BookRegistry
    ) -> None:
        """A later successful save does not clear the reported failure."""
        ready_registry(registry)
        backend.fail_writes = True
        book = asyncio.run(registry.create(make_draft()))
        backend.fail_writes = False

        asyncio.run(registry.set_status(book.id, BookStatus.READING))

        assert isinstance(registry.last_error, SaveFailure)
        assert stored_ids(backend) == [book.id]
        registry.clear_error()
        assert registry.last_error is None

    def test_next_save_catches_up(self, backend: FlakyBackend, registry: BookRegistry) -> None:
        """The next mutation's save is the retry: it writes the full snapshot."""
        ready_registry(registry)
        backend.fail_writes = True
        asyncio.run(registry.create(make_draft(title="Lost")))
        backend.fail_writes = False

        asyncio.run(registry.create(make_draft(title="Kept")))

        assert stored_ids(backend) == ["book-1", "book-2"]


class TestEvents:
    """Tests for the change notification interface."""

    def test_events_follow_mutations(self, registry: BookRegistry) -> None:
        """One event per effective mutation, carrying the new snapshot."""
        events: list[CollectionChanged] = []
        registry.subscribe(events.append)
        ready_registry(registry)

        async def run() -> None:
            book = await registry.create(make_draft())
            await registry.set_status(book.id, BookStatus.READING)
            await registry.set_progress(book.id, 10)
            await registry.update(book.model_copy(update={"rating": 3}))
            await registry.remove("ghost")
            await registry.remove(book.id)

        asyncio.run(run())

        assert [e.kind for e in events] == [
            ChangeKind.LOADED,
            ChangeKind.CREATED,
            ChangeKind.STATUS,
            ChangeKind.PROGRESS,
            ChangeKind.UPDATED,
            ChangeKind.REMOVED,
        ]
        assert events[1].books[0].id == "book-1"
        assert events[-1].books == ()
        assert all(e.persisted for e in events)

    def test_event_reports_failed_save(
        self, backend: FlakyBackend, registry: BookRegistry
    ) -> None:
        """persisted is False when the save failed."""
        events: list[CollectionChanged] = []
        ready_registry(registry)
        registry.subscribe(events.append)
        backend.fail_writes = True

        asyncio.run(registry.create(make_draft()))

        assert events[0].persisted is False
        assert len(events[0].books) == 1

    def test_unsubscribe(self, registry: BookRegistry) -> None:
        """Both the returned callable and unsubscribe() stop delivery."""
        first: list[CollectionChanged] = []
        second: list[CollectionChanged] = []
        stop_first = registry.subscribe(first.append)
        registry.subscribe(second.append)
        ready_registry(registry)

        stop_first()
        registry.unsubscribe(second.append)
        asyncio.run(registry.create(make_draft()))

        assert len(first) == 1
        assert len(second) == 1

    def test_failing_listener_does_not_break_mutation(self, registry: BookRegistry) -> None:
        """Other listeners still run and the mutation completes."""
        seen: list[CollectionChanged] = []

        def broken(event: CollectionChanged) -> None:
            raise RuntimeError("listener bug")

        ready_registry(registry)
        registry.subscribe(broken)
        registry.subscribe(seen.append)

        book = asyncio.run(registry.create(make_draft()))

        assert registry.find_by_id(book.id) == book
        assert len(seen) == 1
        assert registry.last_error is None


class TestOrdering:
    """Memory changes before the persistence suspension point."""

    def test_memory_updated_before_save_completes(self, registry: BookRegistry) -> None:
        """Concurrent callers see the new book while its save is in flight."""
        ready_registry(registry)

        async def run() -> int:
            task = asyncio.create_task(registry.create(make_draft()))
            await asyncio.sleep(0)
            seen = len(registry.books)
            await task
            return seen

        assert asyncio.run(run()) == 1

    def test_overlapping_operations_apply_in_issue_order(
        self, backend: FlakyBackend, registry: BookRegistry
    ) -> None:
        """Gathered operations mutate memory in the order they were issued."""
        ready_registry(registry)
        book = asyncio.run(registry.create(make_draft()))

        async def run() -> None:
            await asyncio.gather(
                registry.set_status(book.id, BookStatus.READING),
                registry.set_progress(book.id, 50),
                registry.set_status(book.id, BookStatus.COMPLETED),
            )

        asyncio.run(run())

        final = registry.books[0]
        assert final.status is BookStatus.COMPLETED
        assert final.current_page == 50
        assert len(backend.writes) == 4
