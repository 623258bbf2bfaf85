"""
Command-line interface for spotiwidget.

This module provides the console host: it wires the session manager, the
poller and the library manager together, runs the requested commands and
renders now-playing updates until interrupted or the session is lost.
"""

import asyncio
from typing import Optional

from spotiwidget import __version__
from spotiwidget.api.auth import AuthManager
from spotiwidget.api.client import SpotifyError
from spotiwidget.api.models import NowPlaying
from spotiwidget.core.artwork import ArtworkResolver
from spotiwidget.core.context import AppContext
from spotiwidget.core.events import AUTH_LOST, NOW_PLAYING_UPDATE
from spotiwidget.core.library import LibraryError, LibraryManager
from spotiwidget.core.poller import NowPlayingPoller
from spotiwidget.core.settings import Settings
from spotiwidget.core.token_store import TokenStoreError
from spotiwidget.ui.now_playing_display import NowPlayingDisplay
from spotiwidget.utils.logger import get_logger


class CLI:
    """
    Command-line interface for spotiwidget.

    This class owns the components of one application run and drives
    them from the command-line options.
    """

    def __init__(self, settings: Settings, context: Optional[AppContext] = None, display: Optional[NowPlayingDisplay] = None):
        """
        Initialize the CLI.

        Args:
            settings: Application settings
            context: Optional pre-built application context
            display: Optional display (a console display by default)
        """
        self.settings = settings
        self.logger = get_logger(__name__)
        self.context = context or AppContext(settings)
        self.resolver = ArtworkResolver(self.context.library, scan_max_depth=settings.scan_max_depth)
        self.poller = NowPlayingPoller(self.context, self.resolver)
        self.auth_manager = AuthManager(self.context, self.poller, self.resolver)
        self.library_manager = LibraryManager(self.context)
        self.display = display or NowPlayingDisplay()

        self._stopped: Optional[asyncio.Event] = None
        self._auth_lost = False
        self._unsubscribe = []

    async def print_logo(self) -> None:
        """Print the application banner."""
        self.display.console.print(f"[bold green]spotiwidget[/] v{__version__}")

    def _on_now_playing(self, snapshot: NowPlaying) -> None:
        self.display.update(snapshot)

    def _on_auth_lost(self, _payload) -> None:
        self.logger.warning("Spotify authorization lost")
        self._auth_lost = True
        self.display.show_message("Spotify authorization lost. Run with --connect to sign in again.", style="red")
        if self._stopped is not None:
            self._stopped.set()

    async def handle_library(self, path: str) -> None:
        """Set the library root and wait for its index."""
        task = await self.library_manager.set_root(path)
        count = await task
        print(f"Library root set to {await self.library_manager.get_root()} ({count} index keys)")

    async def handle_show_library(self) -> None:
        root = await self.library_manager.get_root()
        print(f"Library root: {root}" if root else "No library root configured")

    async def handle_session(self, force_connect: bool) -> None:
        """
        Make sure a session is live.

        Restores the cached session silently and only falls back to the
        interactive authorization when that is not possible.
        """
        if not force_connect and await self.auth_manager.restore():
            print("Spotify session restored")
            return

        print("Authorize spotiwidget in your browser...")
        await self.auth_manager.connect()
        print("Connected to Spotify")

    async def handle_once(self) -> None:
        """Print the current playback once."""
        await self.library_manager.wait_idle()
        snapshot = await self.auth_manager.get_current_playing()
        self.display.print_snapshot(snapshot)

    async def watch(self) -> None:
        """Render updates until the session is lost or the run is interrupted."""
        self._stopped = asyncio.Event()
        self.display.start_display()
        try:
            await self._stopped.wait()
        finally:
            self.display.stop_display()

    async def start(
        self,
        connect: bool = False,
        library: Optional[str] = None,
        show_library: bool = False,
        once: bool = False,
    ) -> int:
        """
        Start the CLI.

        Args:
            connect: Force the interactive authorization
            library: Library root to set before anything else
            show_library: Print the library root and exit
            once: Print the current playback once instead of watching

        Returns:
            Process exit code
        """
        await self.print_logo()

        self._unsubscribe = [
            self.context.events.subscribe(NOW_PLAYING_UPDATE, self._on_now_playing),
            self.context.events.subscribe(AUTH_LOST, self._on_auth_lost),
        ]

        exit_code = 0
        try:
            self.library_manager.load_persisted()

            if library:
                await self.handle_library(library)
            if show_library:
                await self.handle_show_library()
            if (library or show_library) and not (connect or once):
                return 0

            await self.handle_session(connect)

            if once:
                await self.handle_once()
            else:
                await self.watch()
                if self._auth_lost:
                    exit_code = 1

        except (SpotifyError, TokenStoreError, LibraryError) as e:
            self.logger.error(f"CLI Error: {e}")
            print(f"Error: {e}")
            exit_code = 1
        finally:
            for unsubscribe in self._unsubscribe:
                unsubscribe()
            await self.auth_manager.shutdown()

        return exit_code
