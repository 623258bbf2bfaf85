"""
Settings management for spotiwidget.

This module provides the application settings model (validated with Pydantic)
and the functions that read and write the settings file. Only the library
root is ever persisted; everything else comes from defaults or the environment.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator

from spotiwidget.utils.paths import get_config_dir

CLIENT_ID_ENV = "SPOTIFY_CLIENT_ID"
SETTINGS_FILE_NAME = "settings.json"
LIBRARY_ROOT_KEY = "library_root"


class Settings(BaseModel):
    """
    Application settings model.

    This class defines all the settings available in the application,
    with default values and validation.
    """
    # Spotify application
    client_id: Optional[str] = None

    # Loopback redirect for the authorization code
    redirect_host: str = "127.0.0.1"
    redirect_port: int = 5173

    # Polling
    poll_interval: float = 2.0
    connection_timeout: float = 30

    # Local library
    library_root: Optional[Path] = None
    index_max_depth: int = 20
    scan_max_depth: int = 8

    model_config = ConfigDict(
        validate_assignment=True,
        arbitrary_types_allowed=True
    )

    @field_validator("library_root", mode='before')
    def validate_library_root(cls, v):
        """Convert the library root to an absolute Path (empty means unset)."""
        if v is None or v == "":
            return None
        if isinstance(v, str):
            v = Path(v)
        if not isinstance(v, Path):
            raise ValueError(f"Invalid path type: {type(v)}")
        return v.expanduser().absolute()

    @field_validator("poll_interval")
    def validate_poll_interval(cls, v: float):
        """Validate the poll interval."""
        if v <= 0:
            raise ValueError("poll_interval must be positive")
        return v

    @property
    def redirect_uri(self) -> str:
        """The redirect URI registered with the Spotify application."""
        return f"http://{self.redirect_host}:{self.redirect_port}/callback"


def get_settings_path(config_path: Optional[Union[str, Path]] = None) -> Path:
    """Resolve the settings file path."""
    if config_path:
        return Path(config_path)
    return get_config_dir() / SETTINGS_FILE_NAME


def load_settings(config_path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from the settings file and the environment.

    Args:
        config_path: Optional path to a settings file

    Returns:
        Settings object with loaded values
    """
    logger = logging.getLogger(__name__)
    config_file = get_settings_path(config_path)
    client_id = os.environ.get(CLIENT_ID_ENV) or None

    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                config_data = json.load(f)
            return Settings(
                client_id=client_id,
                library_root=config_data.get(LIBRARY_ROOT_KEY),
            )
        except (json.JSONDecodeError, ValueError, AttributeError) as e:
            logger.error(f"Error loading settings: {e}")

    return Settings(client_id=client_id)


def save_settings(settings: Settings, config_path: Optional[Union[str, Path]] = None) -> None:
    """
    Save the persisted part of the settings (the library root).

    Args:
        settings: Settings object to save
        config_path: Optional path to a settings file
    """
    config_file = get_settings_path(config_path)
    config_file.parent.mkdir(parents=True, exist_ok=True)

    root = str(settings.library_root) if settings.library_root else None
    with open(config_file, "w", encoding="utf-8") as f:
        json.dump({LIBRARY_ROOT_KEY: root}, f, indent=2)
