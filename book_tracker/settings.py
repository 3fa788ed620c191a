"""Settings management for book-tracker.

This module provides functions for managing user settings that persist
across CLI sessions.

Functions:
    load_settings: Load settings from disk.
    save_settings: Save settings to disk.
    set_default_status: Set the status shown by the 'reading' command.
"""

from __future__ import annotations

import json

from book_tracker.logging_config import get_logger
from book_tracker.models import BookStatus, Settings
from book_tracker.storage.paths import get_settings_path

logger = get_logger(__name__)


def load_settings() -> Settings:
    """Load settings from disk.

    Returns:
        Settings object. Returns default settings if the file doesn't exist
        or cannot be parsed.
    """
    settings_path = get_settings_path()

    if not settings_path.exists():
        return Settings()

    try:
        with open(settings_path) as f:
            data = json.load(f)
        return Settings(**data)
    except (OSError, ValueError, TypeError) as e:
        logger.warning("Failed to load settings from %s, using defaults: %s", settings_path, e)
        return Settings()


def save_settings(settings: Settings) -> None:
    """Save settings to disk.

    Example:
        >>> save_settings(Settings(default_status=BookStatus.COMPLETED))
    """
    settings_path = get_settings_path()
    settings_path.parent.mkdir(parents=True, exist_ok=True)

    with open(settings_path, "w") as f:
        json.dump(settings.model_dump(mode="json"), f, indent=2)

    logger.debug("Saved settings to %s", settings_path)


def set_default_status(status: BookStatus | str) -> Settings:
    """Set the status tab shown by the 'reading' command.

    Raises:
        ValueError: If status is not a valid BookStatus.
    """
    settings = load_settings()
    settings.default_status = BookStatus.parse(status)
    save_settings(settings)
    logger.info("Set default status to '%s'", settings.default_status.value)
    return settings
