import socket
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from aiohttp import web

from spotiwidget.api.models import Token

TRACK_BODY = {
    "is_playing": True,
    "currently_playing_type": "track",
    "item": {
        "type": "track",
        "name": "Song One",
        "artists": [{"name": "Artist A"}],
        "album": {"name": "The Album", "images": [{"url": "http://img/300", "width": 300}]},
    },
}


class FakeSpotify:
    """Local stand-in for the Spotify accounts and Web API endpoints."""

    def __init__(self):
        self.base = ""
        self.token_requests = []
        self.token_status = 200
        # Status for refresh_token grants only, when set
        self.refresh_status = None
        self.token_body = {
            "access_token": "access-1",
            "refresh_token": "refresh-1",
            "token_type": "Bearer",
            "expires_in": 3600,
            "scope": "user-read-currently-playing user-read-playback-state",
        }
        self.player_requests = []
        self.player_status = 200
        self.player_body = TRACK_BODY
        self.player_headers = {}
        # When set, requests hang until the event fires
        self.stall = None

    @property
    def token_url(self) -> str:
        return f"{self.base}/api/token"

    @property
    def api_base_url(self) -> str:
        return f"{self.base}/v1"

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/api/token", self.handle_token)
        app.router.add_get("/v1/me/player/currently-playing", self.handle_player)
        return app

    def release_stall(self) -> None:
        if self.stall is not None:
            stall, self.stall = self.stall, None
            stall.set()

    async def _wait_stall(self) -> None:
        if self.stall is not None:
            await self.stall.wait()

    async def handle_token(self, request: web.Request) -> web.Response:
        form = await request.post()
        self.token_requests.append(dict(form))
        await self._wait_stall()
        status = self.token_status
        if form.get("grant_type") == "refresh_token" and self.refresh_status is not None:
            status = self.refresh_status
        if status != 200:
            return web.json_response(
                {"error": "invalid_grant", "error_description": "Refresh token revoked"},
                status=status,
            )
        return web.json_response(self.token_body)

    async def handle_player(self, request: web.Request) -> web.Response:
        self.player_requests.append({
            "authorization": request.headers.get("Authorization"),
            "query": dict(request.query),
        })
        await self._wait_stall()
        if self.player_status == 204:
            return web.Response(status=204)
        if self.player_status >= 400:
            return web.json_response(
                {"error": {"status": self.player_status, "message": "Player error"}},
                status=self.player_status,
                headers=self.player_headers,
            )
        return web.json_response(self.player_body, headers=self.player_headers)


@pytest_asyncio.fixture
async def fake_spotify():
    fake = FakeSpotify()
    runner = web.AppRunner(fake.make_app(), access_log=None)
    await runner.setup()

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    site = web.SockSite(runner, sock)
    await site.start()
    fake.base = f"http://127.0.0.1:{sock.getsockname()[1]}"

    yield fake

    fake.release_stall()
    await runner.cleanup()


@pytest.fixture
def make_token():
    """Factory for tokens expiring a given number of seconds from now."""
    def factory(expires_in: int = 3600, access_token: str = "cached-access", refresh_token: str = "cached-refresh") -> Token:
        return Token(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            scopes=["user-read-currently-playing", "user-read-playback-state"],
        )
    return factory


@pytest.fixture
def closed_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
