"""Data models for book-tracker.

This module provides Pydantic v2 models for the book catalog with
reusable validators and agent-friendly error messages.

Models:
    Book: A cataloged book with reading status and progress.
    BookDraft: The fields a user supplies when adding a book.
    Settings: Persisted user preferences.

Enums:
    BookStatus: Reading status of a book (To Read, Reading, Completed).

Serialized field names are camelCase (coverUrl, currentPage, dateAdded) so
the stored collection keeps the layout of existing libraries. Python code
uses the snake_case attribute names.
"""

from __future__ import annotations

import math
import time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

# Storage keys double as file names
STORAGE_KEY_PATTERN = r"^[A-Za-z0-9_.-]+$"

# =============================================================================
# Enums
# =============================================================================


class BookStatus(str, Enum):
    """Reading status of a book.

    Values:
        TO_READ: On the shelf, not started (default for new books).
        READING: Currently being read; progress is tracked.
        COMPLETED: Finished.
    """

    TO_READ = "To Read"
    READING = "Reading"
    COMPLETED = "Completed"

    @classmethod
    def parse(cls, value: BookStatus | str) -> BookStatus:
        """Coerce a status value or a CLI-style slug into a BookStatus.

        Accepts the stored values ("To Read"), member names ("TO_READ") and
        slugs ("to-read"). Anything else is rejected.

        Raises:
            ValueError: If the value is not one of the three statuses.

        Example:
            >>> BookStatus.parse("to-read")
            <BookStatus.TO_READ: 'To Read'>
        """
        if isinstance(value, cls):
            return value
        for status in cls:
            if value in (status.value, status.name, status.slug):
                return status
        allowed = ", ".join(f"'{s.slug}'" for s in cls)
        raise ValueError(f"Invalid status: '{value}'. Allowed values: {allowed}.")

    @property
    def slug(self) -> str:
        """CLI-friendly name, e.g. 'to-read'."""
        return self.value.lower().replace(" ", "-")


# =============================================================================
# Reusable Validator Functions
# =============================================================================


def validate_not_blank(value: str, field_name: str) -> str:
    """Validate a text field is not empty or whitespace only.

    Args:
        value: The string to validate.
        field_name: Name of the field for error messages.

    Returns:
        The stripped string.

    Raises:
        ValueError: If the string is blank.
    """
    stripped = value.strip()
    if not stripped:
        raise ValueError(
            f"Field '{field_name}' cannot be empty. Please enter a {field_name.lower()}."
        )
    return stripped


def normalize_genres(genres: list[str] | tuple[str, ...]) -> tuple[str, ...]:
    """Strip genre names and drop blanks and duplicates, keeping first-seen order.

    Example:
        >>> normalize_genres([" SciFi", "Classic", "SciFi", ""])
        ('SciFi', 'Classic')
    """
    seen: list[str] = []
    for genre in genres:
        name = genre.strip()
        if name and name not in seen:
            seen.append(name)
    return tuple(seen)


def validate_rating(value: int, field_name: str = "rating") -> int:
    """Validate rating is between 1-5.

    Raises:
        ValueError: If rating is out of range.
    """
    if value < 1 or value > 5:
        raise ValueError(
            f"Invalid {field_name}: {value}. "
            f"Rating must be between 1 (lowest) and 5 (highest)."
        )
    return value


def validate_progress(book: Book, current_page: int) -> int:
    """Validate a reading position against the book's page count.

    The registry stores whatever page it is given; callers run this check
    before calling BookRegistry.set_progress.

    Raises:
        ValueError: If the page is outside 0..book.pages.

    Example:
        >>> validate_progress(book, 200)  # book.pages == 412
        200
    """
    if current_page < 0 or current_page > book.pages:
        raise ValueError(
            f"Invalid page number: {current_page}. "
            f"Please enter a number between 0 and {book.pages}."
        )
    return current_page


def now_millis() -> int:
    """Current time as epoch milliseconds."""
    return time.time_ns() // 1_000_000


# =============================================================================
# Book Model
# =============================================================================


class Book(BaseModel):
    """A cataloged book.

    Books are immutable snapshots; the registry replaces them with updated
    copies (model_copy) rather than mutating them in place.

    Attributes:
        id: Opaque unique identifier assigned at creation.
        title, author, cover_url, description: Catalog text.
        genres: Genre tags in display order.
        pages: Total page count (> 0).
        status: Reading status.
        current_page: Last recorded page, absent until progress is recorded.
        rating: Optional 1-5 rating, display only.
        date_added: Creation time in epoch milliseconds.

    Example:
        >>> book = Book.model_validate(
        ...     {"id": "a1", "title": "Dune", "author": "Herbert",
        ...      "coverUrl": "http://x/y.jpg", "description": "...",
        ...      "genres": ["SciFi"], "pages": 412, "dateAdded": 0}
        ... )
        >>> book.status
        <BookStatus.TO_READ: 'To Read'>
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(min_length=1, description="Opaque unique book ID")
    title: str = Field(min_length=1)
    author: str = Field(min_length=1)
    cover_url: str = Field(alias="coverUrl", min_length=1, description="Cover image URL")
    description: str = Field(min_length=1)
    genres: tuple[str, ...] = Field(default=(), description="Genre tags, order preserved")
    pages: int = Field(gt=0, description="Total number of pages")
    status: BookStatus = Field(default=BookStatus.TO_READ)
    current_page: int | None = Field(
        default=None, alias="currentPage", description="Last recorded page"
    )
    rating: int | None = Field(default=None, description="Rating 1-5 (display only)")
    date_added: int = Field(alias="dateAdded", description="Epoch milliseconds")

    @field_validator("genres")
    @classmethod
    def validate_genres(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Drop blank and duplicate genres."""
        return normalize_genres(v)

    def to_storage(self) -> dict[str, object]:
        """Serialize to the stored JSON shape (camelCase, optional fields omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def reading_progress(self) -> float:
        """Percentage of pages read; 0 when no progress is recorded."""
        if not self.current_page:
            return 0.0
        return self.current_page / self.pages * 100

    def progress_percent(self) -> int:
        """Reading progress rounded half-up to a whole percent.

        Example:
            >>> book.model_copy(update={"current_page": 200}).progress_percent()
            49
        """
        return math.floor(self.reading_progress() + 0.5)


# =============================================================================
# Creation Form
# =============================================================================


class BookDraft(BaseModel):
    """Fields supplied when adding a book.

    The registry assigns id, dateAdded and status. At least one genre is
    expected by the add form but is not required here.
    """

    model_config = ConfigDict(populate_by_name=True)

    title: str
    author: str
    cover_url: str = Field(alias="coverUrl")
    description: str
    genres: tuple[str, ...] = ()
    pages: int = Field(gt=0, description="Total number of pages")

    @field_validator("title", "author", "cover_url", "description")
    @classmethod
    def validate_text(cls, v: str, info: ValidationInfo) -> str:
        """Reject blank text fields."""
        field_name = info.field_name or "field"
        return validate_not_blank(v, field_name.replace("_", " "))

    @field_validator("genres")
    @classmethod
    def validate_genres(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Strip and de-duplicate genres."""
        return normalize_genres(v)


# =============================================================================
# Settings Model
# =============================================================================


class Settings(BaseModel):
    """User preferences persisted in settings.json.

    Attributes:
        storage_key: Key under which the collection is stored.
        default_status: Status tab shown by the 'reading' command.
    """

    storage_key: str = Field(default="books", pattern=STORAGE_KEY_PATTERN)
    default_status: BookStatus = Field(default=BookStatus.READING)
