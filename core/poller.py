"""
Now-playing poller for spotiwidget.

While a client is connected, one background task refreshes the token, fetches
the current playback, fills in local artwork and publishes the snapshot, every
``poll_interval`` seconds. Each step races the loop's cancellation token so a
teardown takes effect immediately, even in the middle of a request.
"""

import asyncio
from typing import Optional

from spotiwidget.api.client import APIError, ConnectionError, SpotifyClient, SpotifyError
from spotiwidget.api.models import NowPlaying
from spotiwidget.core.artwork import ArtworkResolver
from spotiwidget.core.context import AppContext
from spotiwidget.core.events import AUTH_LOST, NOW_PLAYING_UPDATE
from spotiwidget.core.session import CancellationToken, OperationCancelled, SessionStatus
from spotiwidget.core.token_store import TokenStoreError
from spotiwidget.utils.logger import get_logger

logger = get_logger(__name__)


async def fetch_now_playing(
    client: SpotifyClient,
    resolver: ArtworkResolver,
    tolerate_errors: bool = False,
) -> NowPlaying:
    """
    Fetch the current playback and resolve local artwork when needed.

    Args:
        client: Authenticated client
        resolver: Local artwork resolver
        tolerate_errors: Turn transient API/connection errors into an empty snapshot

    Returns:
        The snapshot (empty when nothing is playing)

    Raises:
        APIError, ConnectionError: If the fetch fails and errors are not tolerated
    """
    try:
        context = await client.current_playing()
    except (APIError, ConnectionError) as e:
        if not tolerate_errors:
            raise
        logger.warning(f"Now playing fetch failed: {e}")
        return NowPlaying.empty()

    if context is None:
        return NowPlaying.empty()

    snapshot = context.to_now_playing()
    if not snapshot.artwork_url:
        snapshot = await asyncio.to_thread(resolver.apply, snapshot, context)
    return snapshot


class NowPlayingPoller:
    """
    Keeps the now-playing state live for the connected client.

    At most one loop runs per client; :meth:`start_if_needed` is idempotent.
    """

    def __init__(self, context: AppContext, resolver: ArtworkResolver):
        """
        Initialize the poller.

        Args:
            context: Shared application context
            resolver: Local artwork resolver
        """
        self.context = context
        self.resolver = resolver
        self.logger = get_logger(__name__)
        self._task: Optional[asyncio.Task] = None

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def start_if_needed(self) -> Optional[asyncio.Task]:
        """
        Start the poll loop unless one is already running for the current client.

        Returns:
            The new loop task, or None if nothing was started
        """
        claim = self.context.session.claim_watch()
        if claim is None:
            return None

        client, token = claim
        self._task = asyncio.create_task(self.run(client, token), name="now-playing-poller")
        return self._task

    async def run(self, client: SpotifyClient, token: CancellationToken) -> None:
        """Poll until cancelled or the session is lost."""
        self.logger.info("Now-playing poller started")
        try:
            while True:
                if not await self.poll_once(client, token):
                    break
                await token.race(asyncio.sleep(self.context.settings.poll_interval))
        except OperationCancelled:
            pass
        finally:
            self.logger.info("Now-playing poller stopped")

    async def poll_once(self, client: SpotifyClient, token: CancellationToken) -> bool:
        """
        Run one poll iteration.

        Returns:
            False if the session was lost and the loop must end

        Raises:
            OperationCancelled: If the token fired during the iteration
        """
        try:
            await token.race(client.auto_reauth())
        except SpotifyError as e:
            self.logger.warning(f"Token refresh failed, session lost: {e}")
            await self._handle_auth_lost(client, token)
            return False

        try:
            snapshot = await token.race(fetch_now_playing(client, self.resolver, tolerate_errors=True))
        except OperationCancelled:
            raise
        except Exception as e:
            # Anything else from one tick (resolver, parsing) must not end the loop
            self.logger.exception(f"Unexpected error while fetching now playing: {e}")
            snapshot = NowPlaying.empty()

        self.context.events.emit(NOW_PLAYING_UPDATE, snapshot)
        return True

    async def _handle_auth_lost(self, client: SpotifyClient, token: CancellationToken) -> None:
        """Tear the session down after an unrecoverable refresh failure."""
        dropped = self.context.session.clear(SessionStatus.DEGRADED, expected_cancel=token)
        if dropped is None:
            # The session already moved on (teardown or a newer client)
            return

        try:
            await self.context.store.clear_token()
        except TokenStoreError as e:
            self.logger.error(f"Could not delete cached token: {e}")

        self.context.events.emit(AUTH_LOST)
        await dropped.close()
