"""
Library root commands for spotiwidget.

Setting the library root persists it and rebuilds the index in the background;
the rebuild never blocks polling and swaps in the finished index atomically.
"""

import asyncio
from pathlib import Path
from typing import Optional, Set, Union

from spotiwidget.core.context import AppContext
from spotiwidget.core.library_index import build_local_index
from spotiwidget.utils.logger import get_logger


class LibraryError(Exception):
    """Exception raised for invalid library roots."""
    pass


class LibraryManager:
    """
    Owns the library root and the background index rebuilds.
    """

    def __init__(self, context: AppContext):
        self.context = context
        self.logger = get_logger(__name__)
        self._tasks: Set[asyncio.Task] = set()
        self._generation = 0

    async def set_root(self, path: Union[str, Path]) -> asyncio.Task:
        """
        Set, persist and index a new library root.

        Args:
            path: Directory containing the user's audio files

        Returns:
            The background reindex task

        Raises:
            LibraryError: If the path is not a directory
            TokenStoreError: If the root cannot be persisted
        """
        root = Path(path).expanduser().absolute()
        if not root.is_dir():
            raise LibraryError("Not a directory")

        await self.context.store.save_library_root(root)
        self.logger.info(f"Library root set to {root}")
        return self.schedule_reindex(root)

    async def get_root(self) -> Optional[str]:
        """The library root in memory, else the persisted one."""
        root = self.context.library.get_root()
        if root is None:
            root = await asyncio.to_thread(self.context.store.load_library_root)
        return str(root) if root else None

    def load_persisted(self) -> Optional[asyncio.Task]:
        """
        Restore the persisted root at startup and index it in the background.

        Returns:
            The reindex task, or None if no root is configured
        """
        root = self.context.settings.library_root
        if root is None:
            return None
        self.context.library.set_root(root)
        return self.schedule_reindex(root)

    def schedule_reindex(self, root: Path) -> asyncio.Task:
        """Start a background rebuild of the index for a root."""
        task = asyncio.create_task(self.reindex(root))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def reindex(self, root: Path) -> int:
        """
        Rebuild the index on a worker thread and publish it.

        A rebuild that finishes after a newer one was started is discarded.

        Returns:
            Number of keys in the built index
        """
        self._generation += 1
        generation = self._generation

        settings = self.context.settings
        index = await asyncio.to_thread(build_local_index, root, settings.index_max_depth)

        if generation != self._generation:
            self.logger.debug(f"Discarding stale index for {root}")
            return len(index)

        self.context.library.replace(root, index)
        self.logger.info(f"Library index ready: {len(index)} keys")
        return len(index)

    async def wait_idle(self) -> None:
        """Wait for running rebuilds to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
