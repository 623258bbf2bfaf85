"""
Shared authorization session state.

One :class:`SessionState` lives in the application context. Its lock guards
plain in-memory fields only and is never held across an ``await``: callers
copy the handles they need out of the state, release the lock, and only then
suspend.
"""

import asyncio
import threading
from enum import Enum
from typing import Any, Awaitable, Optional, Tuple, TypeVar

T = TypeVar('T')


class SessionStatus(str, Enum):
    """Authorization states of the session."""
    DISCONNECTED = "disconnected"
    AUTHENTICATING = "authenticating"
    CONNECTED = "connected"
    DEGRADED = "degraded"


class OperationCancelled(Exception):
    """Raised by :meth:`CancellationToken.race` when the token fires first."""
    pass


class CancellationToken:
    """
    Cancellation signal for one poll loop.

    Must be created while the owning event loop is running. :meth:`cancel`
    may be called from any thread.
    """

    def __init__(self):
        self._loop = asyncio.get_running_loop()
        self._event = asyncio.Event()
        self._cancelled = False

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Fire the token. Idempotent."""
        self._cancelled = True
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._event.set()
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._event.set)

    async def wait(self) -> None:
        """Wait until the token fires."""
        await self._event.wait()

    async def race(self, awaitable: Awaitable[T]) -> T:
        """
        Run an awaitable unless the token fires first.

        The awaitable is cancelled as soon as the token fires, so in-flight
        work does not delay teardown.

        Raises:
            OperationCancelled: If the token fired before the awaitable finished
        """
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCancelled()

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            waiter.cancel()
            raise

        if work in done:
            waiter.cancel()
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        except Exception:
            # The work failed while being torn down; its result is discarded.
            pass
        raise OperationCancelled()


class SessionState:
    """
    The process-wide authorization session.

    Invariants: at most one live client; ``client`` and ``cancel`` are cleared
    together; the poller is started at most once per client (``watch_started``).
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.client: Optional[Any] = None
        self.watch_started = False
        self.cancel: Optional[CancellationToken] = None
        self.status = SessionStatus.DISCONNECTED

    def get_client(self) -> Optional[Any]:
        """Copy the client handle out of the state."""
        with self.lock:
            return self.client

    def get_status(self) -> SessionStatus:
        with self.lock:
            return self.status

    def begin_authentication(self) -> bool:
        """
        Mark an interactive authorization as in progress.

        Returns:
            False if one is already in progress
        """
        with self.lock:
            if self.status == SessionStatus.AUTHENTICATING:
                return False
            self.status = SessionStatus.AUTHENTICATING
            return True

    def end_authentication(self) -> None:
        """Leave the authenticating state without installing a client."""
        with self.lock:
            if self.status == SessionStatus.AUTHENTICATING:
                self.status = SessionStatus.DISCONNECTED

    def install_client(self, client: Any) -> Optional[Any]:
        """
        Store a freshly authenticated client.

        Returns:
            The client it replaced, if any (the caller closes it)
        """
        with self.lock:
            previous = self.client if self.client is not client else None
            if previous is not None and self.cancel is not None:
                self.cancel.cancel()
                self.cancel = None
                self.watch_started = False
            self.client = client
            self.status = SessionStatus.CONNECTED
            return previous

    def claim_watch(self) -> Optional[Tuple[Any, CancellationToken]]:
        """
        Reserve the right to start the poller for the current client.

        Returns:
            ``(client, token)`` for the caller to start the loop with, or None
            if there is no client or a loop was already started
        """
        with self.lock:
            if self.client is None or self.watch_started:
                return None
            self.watch_started = True
            self.cancel = CancellationToken()
            return self.client, self.cancel

    def clear(
        self,
        status: SessionStatus = SessionStatus.DISCONNECTED,
        expected_cancel: Optional[CancellationToken] = None,
    ) -> Optional[Any]:
        """
        Cancel any poll loop and drop the client.

        Args:
            status: State to move to
            expected_cancel: Only clear if this is still the live loop's token

        Returns:
            The dropped client, if any (the caller closes it)
        """
        with self.lock:
            if expected_cancel is not None and self.cancel is not expected_cancel:
                return None
            if self.cancel is not None:
                self.cancel.cancel()
            client = self.client
            self.client = None
            self.watch_started = False
            self.cancel = None
            self.status = status
            return client
