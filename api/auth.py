"""
Authentication session management for spotiwidget.

This module owns the Spotify authorization lifecycle: the interactive PKCE
handshake, silent restore from a cached token, refresh of a live session and
teardown. A connected client is stored in the shared session and the
now-playing poller is started for it.
"""

import asyncio
import webbrowser
from typing import Callable, Optional

from spotiwidget.api.callback_server import CallbackServer
from spotiwidget.api.client import AuthenticationError, NotConnectedError, SpotifyClient
from spotiwidget.api.models import NowPlaying, Token
from spotiwidget.api.pkce import generate_state
from spotiwidget.core.artwork import ArtworkResolver
from spotiwidget.core.context import AppContext
from spotiwidget.core.poller import NowPlayingPoller, fetch_now_playing
from spotiwidget.core.session import SessionStatus
from spotiwidget.utils.logger import get_logger


class AuthManager:
    """
    Manager for the Spotify authorization session.

    States: disconnected → authenticating → connected, and connected →
    degraded when the poller loses authorization. The session lock is only
    taken for in-memory updates; every network or disk wait happens with the
    client handle copied out of the session.
    """

    def __init__(
        self,
        context: AppContext,
        poller: NowPlayingPoller,
        resolver: ArtworkResolver,
        browser_opener: Callable[[str], bool] = webbrowser.open,
    ):
        """
        Initialize the authentication manager.

        Args:
            context: Shared application context
            poller: Now-playing poller started for every connected client
            resolver: Local artwork resolver used by on-demand fetches
            browser_opener: Function opening the authorization URL
        """
        self.context = context
        self.poller = poller
        self.resolver = resolver
        self.browser_opener = browser_opener
        self.logger = get_logger(__name__)

    def build_client(self, token: Optional[Token] = None) -> SpotifyClient:
        """
        Create a client whose token changes are written to the token store.

        Raises:
            ConfigurationError: If no client id is configured
        """
        settings = self.context.settings
        return SpotifyClient(
            settings.client_id,
            settings.redirect_uri,
            token=token,
            on_token_updated=self.context.store.write_token,
            timeout=settings.connection_timeout,
        )

    def is_connected(self) -> bool:
        return self.context.session.get_client() is not None

    async def connect(self) -> None:
        """
        Connect to Spotify, opening the browser only when there is no usable token.

        Raises:
            ConfigurationError: If no client id is configured
            AuthenticationError: If authorization fails or is already in progress
            TokenStoreError: If the cached token cannot be read
        """
        existing = self.context.session.get_client()
        if existing is not None:
            await self._refresh_existing(existing)
            return

        if not self.context.session.begin_authentication():
            raise AuthenticationError("Authorization already in progress")

        client: Optional[SpotifyClient] = None
        try:
            client = self.build_client()
            token = await self.context.store.read_token()
            if token is None or not await self._revive(client, token):
                await self._authorize(client)
        except BaseException:
            self.context.session.end_authentication()
            if client is not None:
                await client.close()
            raise

        await self._install(client)
        self.logger.info("Connected to Spotify")

    async def restore(self) -> bool:
        """
        Silently resume a previous session from the cached token.

        Never opens a browser.

        Returns:
            True if a session is live afterwards, False otherwise

        Raises:
            ConfigurationError: If a token exists but no client id is configured
            TokenStoreError: If the cached token cannot be read
        """
        existing = self.context.session.get_client()
        if existing is not None:
            try:
                await self._refresh_existing(existing)
            except AuthenticationError:
                return False
            return True

        token = await self.context.store.read_token()
        if token is None:
            self.logger.debug("No cached token to restore")
            return False

        if not self.context.session.begin_authentication():
            return False

        client: Optional[SpotifyClient] = None
        try:
            client = self.build_client(token)
            await client.auto_reauth()
        except AuthenticationError as e:
            self.logger.info(f"Cached token could not be refreshed: {e}")
            await self.context.store.clear_token()
            await self._drop_session()
            await client.close()
            return False
        except BaseException:
            self.context.session.end_authentication()
            if client is not None:
                await client.close()
            raise

        await self._install(client)
        self.logger.info("Spotify session restored")
        return True

    async def get_current_playing(self) -> NowPlaying:
        """
        Fetch the current playback once, with local artwork resolution.

        Raises:
            NotConnectedError: If there is no connected client
            APIError, ConnectionError: If the fetch fails
        """
        client = self.context.session.get_client()
        if client is None:
            raise NotConnectedError("Not connected to Spotify")
        return await fetch_now_playing(client, self.resolver)

    async def shutdown(self) -> None:
        """Stop polling and drop the client; used when the last surface closes."""
        await self._drop_session()
        self.logger.info("Session shut down")

    async def _refresh_existing(self, client: SpotifyClient) -> None:
        """
        Refresh the live client instead of re-authenticating.

        Raises:
            AuthenticationError: If the refresh fails (the session is dropped)
        """
        try:
            await client.auto_reauth()
        except AuthenticationError:
            self.logger.warning("Refresh of the live session failed")
            await self.context.store.clear_token()
            await self._drop_session()
            raise
        self.poller.start_if_needed()

    async def _revive(self, client: SpotifyClient, token: Token) -> bool:
        """
        Try to reuse a cached token without the browser.

        Returns:
            True if the client is usable; False if the cached token was discarded
        """
        client.set_token(token)
        try:
            await client.auto_reauth()
        except AuthenticationError as e:
            if not token.is_expired(margin_seconds=0):
                self.logger.warning(f"Refresh failed, using the cached access token until it expires: {e}")
                return True
            self.logger.info(f"Cached token is unusable, starting a new authorization: {e}")
            client.set_token(None)
            await self.context.store.clear_token()
            return False
        return True

    async def _authorize(self, client: SpotifyClient) -> None:
        """
        Run the interactive PKCE handshake.

        Raises:
            AuthenticationError: If the redirect or the code exchange fails
        """
        settings = self.context.settings
        state = generate_state()
        url = client.get_authorize_url(state)

        server = CallbackServer(settings.redirect_host, settings.redirect_port, expected_state=state)
        await server.start()
        try:
            opened = await asyncio.to_thread(self.browser_opener, url)
            if not opened:
                self.logger.warning(f"Could not open a browser. Open this URL to authorize: {url}")
            code = await server.wait_for_code()
        finally:
            await server.stop()

        await client.request_token(code)

    async def _install(self, client: SpotifyClient) -> None:
        """Store the client, start its poller and close any client it replaced."""
        previous = self.context.session.install_client(client)
        self.poller.start_if_needed()
        if previous is not None:
            await previous.close()

    async def _drop_session(self, status: SessionStatus = SessionStatus.DISCONNECTED) -> None:
        """Cancel the poll loop, clear the session and close the dropped client."""
        dropped = self.context.session.clear(status)

        task = self.poller.task
        if task is not None and not task.done() and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)

        if dropped is not None:
            await dropped.close()
