"""Error classes for book-tracker.

Persistence failures are captured by the store and surfaced through
BookRegistry.last_error instead of being raised to callers. Each error
carries an agent-friendly message with recovery guidance and the
underlying exception as `cause`.

Exceptions:
    TrackerError: Base exception for book-tracker.
    LoadFailure: The stored collection could not be read or parsed.
    SaveFailure: The collection could not be written.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base exception for book-tracker.

    Attributes:
        cause: The underlying exception, if any.

    Example:
        >>> try:
        ...     ...
        ... except TrackerError as e:
        ...     print(f"Library error: {e}")
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize with a message and optional underlying cause."""
        self.cause = cause
        super().__init__(message)


class LoadFailure(TrackerError):
    """The stored collection is unreadable or corrupt.

    The registry treats the library as empty when this happens. Nothing is
    written until the next mutation, so the stored blob can still be
    repaired by hand before then.

    Example:
        >>> raise LoadFailure("books", ValueError("Expecting value"))
    """

    def __init__(self, key: str, cause: Exception) -> None:
        """Initialize LoadFailure.

        Args:
            key: Storage key that failed to load.
            cause: Original exception (I/O, JSON or validation error).
        """
        self.key = key
        super().__init__(
            f"Failed to load books from storage key '{key}': {cause}. "
            f"Recovery options: "
            f"1) Fix the JSON in the stored file by hand. "
            f"2) Restore the file from an export ('book-tracker export'). "
            f"3) Delete the file to start with an empty library.",
            cause,
        )


class SaveFailure(TrackerError):
    """The collection could not be written.

    In-memory state stays updated; it diverges from storage until the next
    successful save.

    Example:
        >>> raise SaveFailure("books", OSError("No space left on device"))
    """

    def __init__(self, key: str, cause: Exception) -> None:
        """Initialize SaveFailure.

        Args:
            key: Storage key that failed to save.
            cause: Original exception.
        """
        self.key = key
        super().__init__(
            f"Failed to save books to storage key '{key}': {cause}. "
            f"Check that the data directory is writable and has free space; "
            f"the next change will retry the save.",
            cause,
        )
