"""book-tracker: personal book catalog with reading status and progress tracking."""

__version__ = "0.1.0"
