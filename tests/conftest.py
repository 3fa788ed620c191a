"""Shared fixtures for book-tracker tests."""

from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from book_tracker.models import BookDraft
from book_tracker.registry import BookRegistry
from book_tracker.storage import BookStore, KeyValueBackend, MemoryBackend
from book_tracker.telemetry import TelemetryService

FIXED_NOW = 1_700_000_000_000


class FlakyBackend(KeyValueBackend):
    """Memory backend that can be told to fail reads or writes."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.items: dict[str, str] = dict(initial or {})
        self.fail_reads = False
        self.fail_writes = False
        self.writes: list[str] = []

    def get_item(self, key: str) -> str | None:
        if self.fail_reads:
            raise OSError("disk unreadable")
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.writes.append(value)
        self.items[key] = value


def make_draft(**overrides: object) -> BookDraft:
    """Create a valid BookDraft, Dune by default."""
    fields: dict[str, object] = {
        "title": "Dune",
        "author": "Herbert",
        "cover_url": "http://x/y.jpg",
        "description": "...",
        "genres": ("SciFi",),
        "pages": 412,
    }
    fields.update(overrides)
    return BookDraft.model_validate(fields)


def sequential_ids() -> Callable[[], str]:
    """Return an id factory yielding book-1, book-2, ..."""
    counter = 0

    def next_id() -> str:
        nonlocal counter
        counter += 1
        return f"book-{counter}"

    return next_id


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path]:
    """Point BOOK_TRACKER_HOME at a temp dir and reset telemetry between tests."""
    home = tmp_path / "home"
    monkeypatch.setenv("BOOK_TRACKER_HOME", str(home))
    monkeypatch.delenv("OTEL_ENABLED", raising=False)
    monkeypatch.delenv("LOG_FILE", raising=False)
    TelemetryService.reset()
    yield home
    TelemetryService.reset()


@pytest.fixture
def backend() -> FlakyBackend:
    """Backend whose failures tests can switch on."""
    return FlakyBackend()


@pytest.fixture
def store(backend: FlakyBackend) -> BookStore:
    """Store over the flaky backend."""
    return BookStore(backend)


@pytest.fixture
def registry(store: BookStore) -> BookRegistry:
    """Registry with a fixed clock and predictable ids."""
    return BookRegistry(store, clock=lambda: FIXED_NOW, id_factory=sequential_ids())


@pytest.fixture
def memory_store() -> BookStore:
    """Store over a plain memory backend."""
    return BookStore(MemoryBackend())
