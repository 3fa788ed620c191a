"""CLI entry point for book-tracker.

This module provides the command-line front end for the book registry:
catalog books, tag them with genres, and track reading status and progress.

Command Structure:
    book-tracker
    ├── add, show, update, delete
    ├── list (filter by --genre / --status), genres, reading
    ├── status, progress
    ├── stats, export
    ├── config (show, set-default-status)
    └── completion

Each invocation constructs one BookRegistry, initializes it from storage,
runs one operation and renders the result. A failed save is reported with a
generic message and exit code 1; the registry itself never raises for it.
"""

import asyncio
import atexit
import json
from collections import Counter
from collections.abc import Coroutine
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

import typer

from book_tracker import __version__
from book_tracker.completion import completion_app
from book_tracker.logging_config import get_logger, setup_logging
from book_tracker.models import (
    Book,
    BookDraft,
    BookStatus,
    validate_progress,
    validate_rating,
)
from book_tracker.registry import BookRegistry
from book_tracker.settings import load_settings, set_default_status
from book_tracker.storage import (
    BookStore,
    FileBackend,
    ensure_config_dir,
    get_data_dir,
    get_settings_path,
)
from book_tracker.telemetry import TelemetryConfig, TelemetryService, traced

logger = get_logger(__name__)

app = typer.Typer(invoke_without_command=True)
config_app = typer.Typer(help="Show and change book-tracker settings")

EMPTY_STATUS_HINTS = {
    BookStatus.TO_READ: "Books you want to read will appear here",
    BookStatus.READING: "Books you're currently reading will appear here",
    BookStatus.COMPLETED: "Books you've completed will appear here",
}


class OutputFormat(str, Enum):
    """Output format options."""

    HUMAN = "human"
    JSON = "json"


# =============================================================================
# Version Callback
# =============================================================================


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"book-tracker version {__version__}")
        raise typer.Exit()


def _shutdown_telemetry() -> None:
    """Shutdown telemetry on exit."""
    TelemetryService.get_instance().shutdown()


# =============================================================================
# Helper Functions - Registry
# =============================================================================


def _open_registry() -> BookRegistry:
    """Construct the registry over the file store named by the settings."""
    settings = load_settings()
    ensure_config_dir()
    store = BookStore(FileBackend(get_data_dir()), key=settings.storage_key)
    return BookRegistry(store)


def _exit_on_error(registry: BookRegistry, action: str) -> None:
    """Report the registry's last failure and exit, if there is one."""
    if registry.last_error is None:
        return
    typer.echo(f"Error: Failed to {action}.", err=True)
    typer.echo(str(registry.last_error), err=True)
    raise typer.Exit(1)


def _load_registry() -> BookRegistry:
    """Open and initialize the registry, exiting if the library can't be read.

    Nothing is written after a failed load, so a damaged file is never
    overwritten by a later change.
    """
    registry = _open_registry()
    asyncio.run(registry.initialize())
    _exit_on_error(registry, "load books")
    return registry


def _apply[T](registry: BookRegistry, operation: Coroutine[Any, Any, T], action: str) -> T:
    """Run a registry mutation and exit with an error if its save failed."""
    result = asyncio.run(operation)
    _exit_on_error(registry, action)
    return result


def _get_book_or_exit(registry: BookRegistry, book_id: str) -> Book:
    """Get book by ID or exit with error."""
    book = registry.find_by_id(book_id)
    if book is None:
        typer.echo(
            f"Error: Book '{book_id}' not found. "
            f"Use 'book-tracker list' to see available books and their IDs.",
            err=True,
        )
        raise typer.Exit(1)
    return book


def _parse_status_or_exit(value: str) -> BookStatus:
    """Parse a status argument or exit with error."""
    try:
        return BookStatus.parse(value)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


# =============================================================================
# Helper Functions - Output
# =============================================================================


def _progress_line(book: Book) -> str:
    """Format progress like '49% (200 of 412 pages)'."""
    return f"{book.progress_percent()}% ({book.current_page or 0} of {book.pages} pages)"


def _print_book_summary(book: Book) -> None:
    """Print a one-book summary (the library card)."""
    typer.echo(f"[{book.id}]: {book.title}")
    typer.echo(f"  Author: {book.author}")
    typer.echo(f"  Status: {book.status.value}")
    if book.genres:
        typer.echo(f"  Genres: {', '.join(book.genres)}")
    if book.status == BookStatus.READING and book.current_page:
        typer.echo(f"  Progress: {book.progress_percent()}%")


def _print_book_detail(book: Book, output_format: OutputFormat) -> None:
    """Print full book details in the requested format."""
    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps(book.to_storage(), indent=2, ensure_ascii=False))
        return

    typer.echo(f"[{book.id}]")
    typer.echo(f"{'=' * 60}")
    typer.echo(f"Title: {book.title}")
    typer.echo(f"Author: {book.author}")
    typer.echo(f"Pages: {book.pages}")
    if book.rating:
        typer.echo(f"Rating: {book.rating}/5")
    typer.echo(f"Genres: {', '.join(book.genres) or '-'}")
    typer.echo(f"Status: {book.status.value}")
    if book.status == BookStatus.READING:
        typer.echo(f"Progress: {_progress_line(book)}")
    typer.echo(f"Cover: {book.cover_url}")
    added = datetime.fromtimestamp(book.date_added / 1000)
    typer.echo(f"Added: {added:%Y-%m-%d %H:%M}")
    typer.echo(f"\nDescription:\n{book.description}")


def _print_book_list(books: tuple[Book, ...], output_format: OutputFormat, empty: str) -> None:
    """Print a list of books, or the empty-state message."""
    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps([b.to_storage() for b in books], indent=2, ensure_ascii=False))
        return
    if not books:
        typer.echo(empty)
        return
    typer.echo(f"Found {len(books)} book(s):\n")
    for book in books:
        _print_book_summary(book)
        typer.echo()


# =============================================================================
# Main App Callback
# =============================================================================


@traced("main")
def _run_main_command() -> None:
    """Execute main command logic with tracing."""
    typer.echo("book-tracker - Personal book catalog and reading tracker")
    typer.echo("Use --help for available commands")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Verbosity level: -v=INFO, -vv=DEBUG, -vvv=TRACE (includes library internals)",
        ),
    ] = 0,
    _version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
    telemetry: Annotated[
        bool,
        typer.Option(
            "--telemetry",
            envvar="OTEL_ENABLED",
            help="Enable OpenTelemetry tracing (or set OTEL_ENABLED=true)",
        ),
    ] = False,
) -> None:
    """Personal book catalog: genres, reading status and progress.

    \b
    QUICK START:
        book-tracker add --title Dune --author Herbert \\
            --cover-url http://x/y.jpg --description "Desert planet" \\
            --genre SciFi --pages 412
        book-tracker list --genre SciFi
        book-tracker status <id> reading
        book-tracker progress <id> 200

    \b
    DATA STORAGE:
        ~/.config/book-tracker/data/books.json   - Book collection
        ~/.config/book-tracker/settings.json     - Settings
        (set BOOK_TRACKER_HOME to use another directory)
    """
    setup_logging(verbose)

    config = TelemetryConfig.from_env()
    config.enabled = telemetry or config.enabled
    TelemetryService.get_instance().initialize(config)
    atexit.register(_shutdown_telemetry)

    if ctx.invoked_subcommand is None:
        _run_main_command()


# =============================================================================
# Catalog Commands
# =============================================================================


@app.command(name="add")
@traced("cli.add")
def add_command(
    title: Annotated[str, typer.Option("--title", help="Book title")],
    author: Annotated[str, typer.Option("--author", help="Author name")],
    cover_url: Annotated[str, typer.Option("--cover-url", help="Cover image URL")],
    description: Annotated[str, typer.Option("--description", help="Short description")],
    pages: Annotated[int, typer.Option("--pages", help="Number of pages")],
    genres: Annotated[
        list[str] | None,
        typer.Option("--genre", "-g", help="Genre (repeat for several)"),
    ] = None,
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.HUMAN,
) -> None:
    """Add a book to the library.

    New books start with status 'To Read'.

    \b
    REQUIRED FIELDS:
        --title, --author, --cover-url, --description
        --genre         At least one genre (repeatable)
        --pages         Number of pages (> 0)

    \b
    EXAMPLES:
        book-tracker add --title "Dune" --author "Frank Herbert" \\
            --cover-url "https://covers.example/dune.jpg" \\
            --description "Desert planet epic" --genre SciFi --genre Classic --pages 412
    """
    logger.info("Adding book: %s", title)

    if not genres or not any(g.strip() for g in genres):
        typer.echo("Error: Please add at least one genre (--genre).", err=True)
        raise typer.Exit(1)

    try:
        draft = BookDraft(
            title=title,
            author=author,
            cover_url=cover_url,
            description=description,
            genres=tuple(genres),
            pages=pages,
        )
    except ValueError as e:
        typer.echo(f"Error: Validation failed: {e}", err=True)
        raise typer.Exit(1)

    registry = _load_registry()
    book = _apply(registry, registry.create(draft), "add book")

    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps({"status": "created", "id": book.id}))
    else:
        typer.echo(f"Added book: {book.title} [{book.id}]")


@app.command(name="show")
def show_command(
    book_id: Annotated[str, typer.Argument(help="Book ID to show")],
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.HUMAN,
) -> None:
    """Show details of a book.

    \b
    Examples:
        book-tracker show 3f2a...
        book-tracker show 3f2a... --format json
    """
    registry = _load_registry()
    _print_book_detail(_get_book_or_exit(registry, book_id), output_format)


@app.command(name="update")
@traced("cli.update")
def update_command(
    book_id: Annotated[str, typer.Argument(help="Book ID to update")],
    title: Annotated[str | None, typer.Option("--title", help="Book title")] = None,
    author: Annotated[str | None, typer.Option("--author", help="Author name")] = None,
    cover_url: Annotated[str | None, typer.Option("--cover-url", help="Cover image URL")] = None,
    description: Annotated[
        str | None, typer.Option("--description", help="Short description")
    ] = None,
    pages: Annotated[int | None, typer.Option("--pages", help="Number of pages")] = None,
    genres: Annotated[
        list[str] | None,
        typer.Option("--genre", "-g", help="Replace genres (repeat for several)"),
    ] = None,
    rating: Annotated[int | None, typer.Option("--rating", help="Rating 1-5")] = None,
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.HUMAN,
) -> None:
    """Update fields of a book.

    Only the given fields change; the book is then saved as a whole.
    Status and progress have their own commands.

    \b
    Examples:
        book-tracker update 3f2a... --rating 5
        book-tracker update 3f2a... --genre SciFi --genre Classic
    """
    logger.info("Updating book: %s", book_id)

    updates: dict[str, object] = {
        key: value
        for key, value in {
            "title": title,
            "author": author,
            "cover_url": cover_url,
            "description": description,
            "pages": pages,
            "genres": tuple(genres) if genres else None,
            "rating": rating,
        }.items()
        if value is not None
    }
    if not updates:
        typer.echo("Error: No updates specified. Use --help to see available options.", err=True)
        raise typer.Exit(1)

    registry = _load_registry()
    book = _get_book_or_exit(registry, book_id)

    try:
        if rating is not None:
            validate_rating(rating)
        updated = Book.model_validate({**book.model_dump(), **updates})
        if updated.current_page is not None:
            validate_progress(updated, updated.current_page)
    except ValueError as e:
        typer.echo(f"Error: Validation failed: {e}", err=True)
        raise typer.Exit(1)

    _apply(registry, registry.update(updated), "update book")

    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps({"status": "updated", "id": book_id}))
    else:
        typer.echo(f"Updated book: {updated.title} [{book_id}]")


@app.command(name="delete")
@traced("cli.delete")
def delete_command(
    book_id: Annotated[str, typer.Argument(help="Book ID to delete")],
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation")] = False,
    output_format: Annotated[
        OutputFormat, typer.Option("--format", help="Output format")
    ] = OutputFormat.HUMAN,
) -> None:
    """Delete a book permanently.

    \b
    Examples:
        book-tracker delete 3f2a...
        book-tracker delete 3f2a... --force
    """
    logger.info("Deleting book: %s", book_id)

    registry = _load_registry()
    book = _get_book_or_exit(registry, book_id)

    if not force:
        confirm = typer.confirm(f"Are you sure you want to delete '{book.title}'?")
        if not confirm:
            typer.echo("Cancelled")
            raise typer.Exit(0)

    _apply(registry, registry.remove(book_id), "delete book")

    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps({"status": "deleted", "id": book_id}))
    else:
        typer.echo(f"Deleted book: {book.title}")


# =============================================================================
# Browse Commands
# =============================================================================


@app.command(name="list")
def list_command(
    genre: Annotated[
        str | None, typer.Option("--genre", "-g", help="Only books tagged with this genre")
    ] = None,
    status: Annotated[
        str | None,
        typer.Option("--status", "-s", help="Only books with this status (to-read, reading, completed)"),
    ] = None,
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.HUMAN,
    count: Annotated[
        bool, typer.Option("--count", "-c", help="Show only the number of books")
    ] = False,
) -> None:
    """List books in the library, optionally filtered by genre and status.

    \b
    Examples:
        book-tracker list
        book-tracker list --genre SciFi
        book-tracker list --status completed --format json
        book-tracker list --count
    """
    wanted_status = _parse_status_or_exit(status) if status else None

    registry = _load_registry()
    books = registry.filter_by_genre(genre)
    if wanted_status is not None:
        books = tuple(b for b in books if b.status == wanted_status)

    if count:
        if output_format == OutputFormat.JSON:
            typer.echo(json.dumps({"count": len(books)}))
        else:
            typer.echo(len(books))
        return

    if genre or wanted_status:
        empty = "No books found in this category. Try another genre or add some books."
    else:
        empty = "Your library is empty. Add books to get started with 'book-tracker add'."
    _print_book_list(books, output_format, empty)


@app.command(name="genres")
def genres_command(
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.HUMAN,
) -> None:
    """List all genres used in the library, sorted alphabetically."""
    registry = _load_registry()
    genres = registry.all_genres()

    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps(genres))
    elif not genres:
        typer.echo("No genres yet")
    else:
        for name in genres:
            typer.echo(name)


@app.command(name="reading")
def reading_command(
    status: Annotated[
        str | None,
        typer.Option(
            "--status",
            "-s",
            help="Status tab: to-read, reading, completed (default from settings)",
        ),
    ] = None,
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.HUMAN,
) -> None:
    """Show books by reading status, with progress for books being read.

    \b
    Examples:
        book-tracker reading
        book-tracker reading --status to-read
    """
    active = _parse_status_or_exit(status) if status else load_settings().default_status

    registry = _load_registry()
    books = registry.filter_by_status(active)
    empty = f"No books {active.value.lower()}. {EMPTY_STATUS_HINTS[active]}"
    _print_book_list(books, output_format, empty)


# =============================================================================
# Reading Commands
# =============================================================================


@app.command(name="status")
@traced("cli.status")
def status_command(
    book_id: Annotated[str, typer.Argument(help="Book ID")],
    status: Annotated[str, typer.Argument(help="New status: to-read, reading, completed")],
) -> None:
    """Set the reading status of a book.

    \b
    Examples:
        book-tracker status 3f2a... reading
        book-tracker status 3f2a... completed
    """
    new_status = _parse_status_or_exit(status)

    registry = _load_registry()
    book = _get_book_or_exit(registry, book_id)
    _apply(registry, registry.set_status(book_id, new_status), "update book status")

    typer.echo(f"{book.title}: {new_status.value}")


@app.command(name="progress")
@traced("cli.progress")
def progress_command(
    book_id: Annotated[str, typer.Argument(help="Book ID")],
    page: Annotated[int, typer.Argument(help="Current page")],
) -> None:
    """Record the page you are on.

    The page must be between 0 and the book's page count.

    \b
    Examples:
        book-tracker progress 3f2a... 200
    """
    registry = _load_registry()
    book = _get_book_or_exit(registry, book_id)

    try:
        validate_progress(book, page)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    _apply(registry, registry.set_progress(book_id, page), "update reading progress")

    updated = _get_book_or_exit(registry, book_id)
    typer.echo(f"{updated.title}: {_progress_line(updated)}")


# =============================================================================
# Stats / Export Commands
# =============================================================================


@app.command(name="stats")
def stats_command(
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format: human or json")
    ] = OutputFormat.HUMAN,
) -> None:
    """Display statistics for the library.

    \b
    STATISTICS SHOWN:
        - Total books and breakdown by status
        - Pages read (completed books plus current progress)
        - Top 10 genres and authors

    \b
    JSON OUTPUT SCHEMA:
        {
          "total_count": 12,
          "by_status": {"To Read": 5, "Reading": 2, "Completed": 5},
          "pages_read": 2480,
          "genres_top_10": {"SciFi": 4, ...},
          "authors_top_10": {"Frank Herbert": 2, ...}
        }
    """
    logger.info("Generating statistics")

    registry = _load_registry()
    books = registry.books

    by_status: Counter[str] = Counter({s.value: 0 for s in BookStatus})
    genres: Counter[str] = Counter()
    authors: Counter[str] = Counter()
    pages_read = 0
    for book in books:
        by_status[book.status.value] += 1
        genres.update(book.genres)
        authors[book.author] += 1
        if book.status == BookStatus.COMPLETED:
            pages_read += book.pages
        elif book.current_page:
            pages_read += min(book.current_page, book.pages)

    if output_format == OutputFormat.JSON:
        stats_data = {
            "total_count": len(books),
            "by_status": dict(by_status),
            "pages_read": pages_read,
            "genres_top_10": dict(genres.most_common(10)),
            "authors_top_10": dict(authors.most_common(10)),
        }
        typer.echo(json.dumps(stats_data, indent=2))
        return

    typer.echo("=" * 60)
    typer.echo("LIBRARY STATISTICS")
    typer.echo("=" * 60)

    typer.echo(f"\nTotal Books: {len(books)}")
    for status in BookStatus:
        typer.echo(f"  - {status.value + ':':<11} {by_status[status.value]}")
    typer.echo(f"Pages Read: {pages_read}")

    if genres:
        typer.echo("\n--- Top 10 Genres ---")
        typer.echo(f"{'Genre':<30} {'Count':>5}")
        typer.echo("-" * 35)
        for name, n in genres.most_common(10):
            display = name[:27] + "..." if len(name) > 30 else name
            typer.echo(f"{display:<30} {n:>5}")

    if authors:
        typer.echo("\n--- Top 10 Authors ---")
        typer.echo(f"{'Author':<40} {'Count':>5}")
        typer.echo("-" * 45)
        for name, n in authors.most_common(10):
            display = name[:37] + "..." if len(name) > 40 else name
            typer.echo(f"{display:<40} {n:>5}")

    typer.echo()


@app.command(name="export")
def export_command(
    filename: Annotated[str, typer.Argument(help="Output JSON file path (supports ~)")],
    force: Annotated[bool, typer.Option("--force", "-f", help="Overwrite existing file")] = False,
) -> None:
    """Export the library to a JSON file.

    The file holds the same JSON array as the library's storage, so it can
    be copied back into the data directory to restore the library.

    \b
    EXAMPLES:
        book-tracker export backup.json
        book-tracker export ~/books-backup.json --force
    """
    logger.info("Exporting to: %s", filename)

    output_path = Path(filename).expanduser()

    if output_path.exists() and not force:
        typer.echo(
            f"Error: File '{output_path}' already exists. Use --force to overwrite.",
            err=True,
        )
        raise typer.Exit(1)

    registry = _load_registry()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(BookStore.serialize(registry.books), encoding="utf-8")

    typer.echo(f"Exported {len(registry.books)} books to {output_path}")


# =============================================================================
# Config Commands
# =============================================================================


@config_app.command(name="show")
def config_show(
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.HUMAN,
) -> None:
    """Show current settings and data locations."""
    settings = load_settings()
    data = {
        **settings.model_dump(mode="json"),
        "settings_path": str(get_settings_path()),
        "data_dir": str(get_data_dir()),
    }
    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps(data, indent=2))
    else:
        for key, value in data.items():
            typer.echo(f"{key}: {value}")


@config_app.command(name="set-default-status")
def config_set_default_status(
    status: Annotated[str, typer.Argument(help="to-read, reading or completed")],
) -> None:
    """Set the status tab shown by 'book-tracker reading'."""
    try:
        settings = set_default_status(status)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Default status set to '{settings.default_status.value}'")


app.add_typer(config_app, name="config")
app.add_typer(completion_app, name="completion")


if __name__ == "__main__":
    app()
