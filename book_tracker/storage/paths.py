"""Path management for book-tracker.

All data lives under ~/.config/book-tracker/ unless the BOOK_TRACKER_HOME
environment variable points elsewhere.

Functions:
    get_config_dir: Get the main configuration directory.
    get_data_dir: Get the directory holding stored values.
    get_settings_path: Get the path to settings.json.
    ensure_config_dir: Create all required directories if they don't exist.
"""

import os
from pathlib import Path

HOME_ENV_VAR = "BOOK_TRACKER_HOME"


def get_config_dir() -> Path:
    """Get the configuration directory for book-tracker.

    Returns:
        Path from BOOK_TRACKER_HOME if set, otherwise ~/.config/book-tracker/

    Example:
        >>> str(get_config_dir()).endswith(".config/book-tracker")
        True
    """
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "book-tracker"


def get_data_dir() -> Path:
    """Get the directory where the file backend keeps one file per key.

    Returns:
        Path to <config dir>/data/
    """
    return get_config_dir() / "data"


def get_settings_path() -> Path:
    """Get the path to the settings file.

    Returns:
        Path to <config dir>/settings.json
    """
    return get_config_dir() / "settings.json"


def ensure_config_dir() -> None:
    """Create configuration directories if they don't exist.

    This function is idempotent and safe to call multiple times.
    """
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
