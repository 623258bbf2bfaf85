"""
One-shot loopback listener for the OAuth redirect.

After the user approves access in the browser, Spotify redirects to
``http://<host>:<port>/callback?code=...``. This module serves exactly that
route, hands the code to whoever awaits :meth:`CallbackServer.wait_for_code`
and then stops listening.
"""

import asyncio
import socket
from typing import Optional

from aiohttp import web

from spotiwidget.api.client import AuthenticationError
from spotiwidget.utils.logger import get_logger

SUCCESS_BODY = "You can close this tab and return to the app. ✅"
NOT_FOUND_BODY = "Not Found"


class CallbackServer:
    """
    Loopback HTTP listener that accepts one authorization code.

    Requests to any path other than ``/callback``, or to ``/callback`` without
    a code (or with the wrong ``state``), get ``404 Not Found`` and the
    listener keeps waiting. A ``/callback?error=...`` redirect fails the wait.
    """

    def __init__(
        self,
        host: str,
        port: int,
        expected_state: Optional[str] = None,
        sock: Optional[socket.socket] = None,
    ):
        """
        Initialize the listener.

        Args:
            host: Interface to bind
            port: Port to bind
            expected_state: ``state`` value the redirect must carry, if any
            sock: Already bound socket to serve on instead of host/port
        """
        self.host = host
        self.port = port
        self.expected_state = expected_state
        self.sock = sock
        self.logger = get_logger(__name__)

        self._runner: Optional[web.AppRunner] = None
        self._code: Optional[asyncio.Future] = None

    async def start(self) -> None:
        """
        Start listening.

        Raises:
            AuthenticationError: If the address cannot be bound
        """
        self._code = asyncio.get_running_loop().create_future()

        app = web.Application()
        app.router.add_get("/callback", self._handle_callback)
        app.router.add_route("*", "/{tail:.*}", self._handle_not_found)

        self._runner = web.AppRunner(app, access_log=None)
        await self._runner.setup()

        if self.sock is not None:
            site = web.SockSite(self._runner, self.sock)
        else:
            site = web.TCPSite(self._runner, self.host, self.port)

        try:
            await site.start()
        except OSError as e:
            await self.stop()
            raise AuthenticationError(f"Bind {self.host}:{self.port} failed: {e}") from e

        self.logger.info(f"Waiting for the authorization redirect on http://{self.host}:{self.port}/callback")

    async def wait_for_code(self) -> str:
        """
        Wait for the authorization code, then stop listening.

        Returns:
            The code from the first valid redirect

        Raises:
            AuthenticationError: If the listener stops before a code arrives,
                or the redirect reports an error
        """
        if self._code is None:
            raise AuthenticationError("Callback wait error: listener was not started")
        try:
            return await self._code
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop listening; a pending wait fails."""
        if self._code is not None and not self._code.done():
            self._code.set_exception(
                AuthenticationError("Callback wait error: listener stopped before a code was received")
            )
        if self._runner is not None:
            runner, self._runner = self._runner, None
            await runner.cleanup()

    async def _handle_callback(self, request: web.Request) -> web.StreamResponse:
        """Handle ``GET /callback``."""
        if self._code is None or self._code.done():
            return self._not_found()

        error = request.query.get("error")
        if error:
            self.logger.warning(f"Authorization was refused: {error}")
            self._code.set_exception(AuthenticationError(f"Authorization failed: {error}"))
            return self._not_found()

        code = request.query.get("code")
        if not code:
            return self._not_found()

        if self.expected_state is not None and request.query.get("state") != self.expected_state:
            self.logger.warning("Ignoring redirect with an unexpected state value")
            return self._not_found()

        # Answer the browser before the waiting side shuts the listener down
        response = web.Response(text=SUCCESS_BODY, content_type="text/plain", charset="utf-8")
        response.force_close()
        await response.prepare(request)
        await response.write_eof()

        if not self._code.done():
            self._code.set_result(code)
        return response

    async def _handle_not_found(self, request: web.Request) -> web.Response:
        return self._not_found()

    @staticmethod
    def _not_found() -> web.Response:
        response = web.Response(status=404, text=NOT_FOUND_BODY, content_type="text/plain", charset="utf-8")
        response.force_close()
        return response
