"""
Path utilities for spotiwidget.

This module provides functions for locating the per-app data directory and
the files the application keeps there (token, settings, artwork cache, log).
"""

import os
import platform
import re
from pathlib import Path

from spotiwidget.utils.logger import get_logger

APP_NAME = "spotiwidget"
DATA_DIR_ENV = "SPOTIWIDGET_DATA_DIR"


def get_platform_data_dir() -> Path:
    """
    Get the platform's local application data directory for this app.

    Returns:
        Path to the (not necessarily existing) data directory
    """
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        return Path(override).expanduser()

    system = platform.system()
    if system == "Windows":
        base = os.environ.get("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
        return Path(base) / APP_NAME
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME

    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / APP_NAME
    return Path.home() / ".local" / "share" / APP_NAME


def get_data_dir() -> Path:
    """
    Get the data directory for the application with enhanced error handling.

    The directory is created if needed and checked for writability; when it
    cannot be used a directory in the user's home is used instead.

    Returns:
        Path to the data directory
    """
    logger = get_logger(__name__)
    data_dir = get_platform_data_dir()
    fallback_dir = Path.home() / f".{APP_NAME}_data"

    try:
        data_dir.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        logger.error(f"Permission denied when creating data directory: {data_dir}")
        logger.info(f"Using fallback data directory: {fallback_dir}")
        fallback_dir.mkdir(parents=True, exist_ok=True)
        return fallback_dir

    test_file = data_dir / ".write_test"
    try:
        with open(test_file, "w") as f:
            f.write("test")
        test_file.unlink()
    except OSError as e:
        logger.error(f"Data directory is not writable: {data_dir}, error: {str(e)}")
        logger.info(f"Using fallback data directory: {fallback_dir}")
        fallback_dir.mkdir(parents=True, exist_ok=True)
        return fallback_dir

    return data_dir


def get_config_dir() -> Path:
    """
    Get the directory holding the settings file.

    Returns:
        Path to the configuration directory
    """
    config_dir = get_data_dir() / "settings"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_token_path() -> Path:
    """
    Get the path of the cached OAuth token file.

    Returns:
        Path to the token file (its parent directory exists)
    """
    token_dir = get_data_dir() / "spotify"
    token_dir.mkdir(parents=True, exist_ok=True)
    return token_dir / "token.json"


def get_cache_dir() -> Path:
    """
    Get the directory where extracted artwork is cached.

    Returns:
        Path to the artwork cache directory
    """
    cache_dir = get_data_dir() / "artcache"
    cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir


def get_log_file() -> Path:
    """Get the path of the application log file."""
    return get_data_dir() / f"{APP_NAME}.log"


def sanitize_filename(filename: str) -> str:
    """
    Sanitize a filename to ensure it's valid across different operating systems.

    Args:
        filename: The filename to sanitize

    Returns:
        A sanitized filename
    """
    invalid_chars = '<>:"/\\|?*'
    for char in invalid_chars:
        filename = filename.replace(char, '_')

    # C0 and C1 control characters
    control_chars_re = re.compile(r'[\x00-\x1f\x7f-\x9f]')
    filename = control_chars_re.sub('', filename)

    filename = filename.strip(' .')

    if not filename:
        filename = "unnamed"

    # 255 is the limit on many filesystems
    if len(filename) > 250:
        parts = filename.rsplit('.', 1)
        if len(parts) > 1 and len(parts[1]) <= 10:
            filename = parts[0][:250 - len(parts[1]) - 1] + '.' + parts[1]
        else:
            filename = filename[:250]

    return filename
