"""
Token store for spotiwidget.

Persists the single OAuth token record and the library-root preference in the
per-app data directory. File I/O goes through aiofiles / worker threads so the
event loop is never blocked on disk.
"""

import asyncio
from pathlib import Path
from typing import Optional, Union

import aiofiles
from pydantic import ValidationError

from spotiwidget.api.models import Token
from spotiwidget.core.settings import Settings, get_settings_path, load_settings, save_settings
from spotiwidget.utils.logger import get_logger
from spotiwidget.utils.paths import get_token_path


class TokenStoreError(Exception):
    """Exception raised when a stored file cannot be read or written."""
    pass


class TokenStore:
    """
    Reads and writes the cached token and the persisted library root.

    A missing token file means "not authenticated" and is not an error.
    """

    def __init__(
        self,
        settings: Settings,
        token_path: Optional[Union[str, Path]] = None,
        settings_path: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize the token store.

        Args:
            settings: Application settings (its library root is what gets persisted)
            token_path: Optional override of the token file location
            settings_path: Optional override of the settings file location
        """
        self.settings = settings
        self.token_path = Path(token_path) if token_path else get_token_path()
        self.settings_path = Path(settings_path) if settings_path else get_settings_path()
        self.logger = get_logger(__name__)

    async def read_token(self) -> Optional[Token]:
        """
        Read the cached token.

        Returns:
            The token, or None if no token has been cached

        Raises:
            TokenStoreError: If the file exists but cannot be read or parsed
        """
        if not self.token_path.exists():
            return None
        try:
            async with aiofiles.open(self.token_path, "r", encoding="utf-8") as f:
                content = await f.read()
        except OSError as e:
            raise TokenStoreError(f"read token file: {e}") from e

        try:
            return Token.model_validate_json(content)
        except ValidationError as e:
            raise TokenStoreError(f"parse token json: {e}") from e

    async def write_token(self, token: Token) -> None:
        """
        Write the token, replacing any cached one.

        Raises:
            TokenStoreError: If the file cannot be written
        """
        try:
            self.token_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.token_path.with_suffix(".tmp")
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(token.model_dump_json())
            await asyncio.to_thread(tmp_path.replace, self.token_path)
        except OSError as e:
            raise TokenStoreError(f"write token file: {e}") from e
        self.logger.debug(f"Token written to {self.token_path}")

    async def clear_token(self) -> None:
        """
        Delete the cached token if there is one.

        Raises:
            TokenStoreError: If the file exists but cannot be removed
        """
        try:
            await asyncio.to_thread(self.token_path.unlink, missing_ok=True)
        except OSError as e:
            raise TokenStoreError(f"remove token file: {e}") from e
        self.logger.info("Cached token cleared")

    async def save_library_root(self, root: Path) -> None:
        """
        Persist the library root.

        Raises:
            TokenStoreError: If the settings file cannot be written
        """
        self.settings.library_root = root
        try:
            await asyncio.to_thread(save_settings, self.settings, self.settings_path)
        except OSError as e:
            raise TokenStoreError(f"write settings file: {e}") from e

    def load_library_root(self) -> Optional[Path]:
        """Read the persisted library root from the settings file, if any."""
        return load_settings(self.settings_path).library_root
