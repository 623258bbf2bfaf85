"""
Spotify Web API client for spotiwidget.

This module provides an asynchronous client covering the parts of the Spotify
Web API the widget needs: the PKCE authorization code flow, token refresh and
the "currently playing" player endpoint.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import urlencode

import aiohttp

from spotiwidget.api.models import CurrentlyPlaying, Token
from spotiwidget.api.pkce import PKCEPair, generate_state, new_pkce_pair
from spotiwidget.utils.logger import get_logger

SCOPES = ["user-read-currently-playing", "user-read-playback-state"]

TokenCallback = Callable[[Token], Awaitable[None]]


class SpotifyError(Exception):
    """Base exception for Spotify errors."""
    pass


class ConfigurationError(SpotifyError):
    """Exception raised when the application is not configured to talk to Spotify."""
    pass


class AuthenticationError(SpotifyError):
    """Exception raised for authorization and token errors."""
    pass


class APIError(SpotifyError):
    """Exception raised for error responses from the Web API."""
    def __init__(self, message: str, status_code: Optional[int] = None, retry_after: Optional[int] = None):
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__(message)


class ConnectionError(SpotifyError):
    """Exception raised for connection errors."""
    pass


class NotConnectedError(SpotifyError):
    """Exception raised when a command needs a connected client and there is none."""
    pass


class SpotifyClient:
    """
    Asynchronous client for the Spotify Web API.

    The client owns one OAuth token. Whenever the token changes (code exchange
    or refresh) the optional ``on_token_updated`` callback is awaited so the
    caller can persist it.
    """

    AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
    TOKEN_URL = "https://accounts.spotify.com/api/token"
    API_BASE_URL = "https://api.spotify.com/v1"

    def __init__(
        self,
        client_id: Optional[str],
        redirect_uri: str,
        token: Optional[Token] = None,
        on_token_updated: Optional[TokenCallback] = None,
        token_url: Optional[str] = None,
        api_base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize the Spotify API client.

        Args:
            client_id: Spotify application client id
            redirect_uri: Redirect URI registered for the application
            token: Optional previously cached token
            on_token_updated: Optional coroutine called with every new token
            token_url: Override of the token endpoint
            api_base_url: Override of the Web API base URL
            timeout: Total timeout in seconds for each request (aiohttp default if omitted)

        Raises:
            ConfigurationError: If no client id is given
        """
        if not client_id or not client_id.strip():
            raise ConfigurationError("Missing SPOTIFY_CLIENT_ID")

        self.client_id = client_id.strip()
        self.redirect_uri = redirect_uri
        self.on_token_updated = on_token_updated
        self.token_url = token_url or self.TOKEN_URL
        self.api_base_url = (api_base_url or self.API_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.logger = get_logger(__name__)

        self._token = token
        self._pkce: Optional[PKCEPair] = None
        self._refresh_lock = asyncio.Lock()
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        """Context manager entry."""
        self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        await self.close()

    async def close(self):
        """Explicitly close the client session."""
        if self.session:
            self.logger.debug("Closing SpotifyClient session")
            await self.session.close()
            self.session = None

    def _get_session(self) -> aiohttp.ClientSession:
        """Get the current session or create a new one."""
        if self.session is None or self.session.closed:
            if self.timeout is not None:
                self.session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
            else:
                self.session = aiohttp.ClientSession()
        return self.session

    @property
    def token(self) -> Optional[Token]:
        return self._token

    def set_token(self, token: Optional[Token]) -> None:
        """Replace the token without notifying the callback."""
        self._token = token

    def get_authorize_url(self, state: Optional[str] = None) -> str:
        """
        Build the authorization URL and remember the PKCE verifier for it.

        Args:
            state: Value Spotify echoes back on the redirect; generated if omitted

        Returns:
            URL to open in the user's browser
        """
        self._pkce = new_pkce_pair()
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "code_challenge_method": "S256",
            "code_challenge": self._pkce.challenge,
            "scope": " ".join(SCOPES),
            "state": state or generate_state(),
        }
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    async def request_token(self, code: str) -> Token:
        """
        Exchange an authorization code for a token.

        Args:
            code: Code delivered to the redirect URI

        Returns:
            The new token

        Raises:
            AuthenticationError: If there is no pending authorization or the exchange fails
        """
        if self._pkce is None:
            raise AuthenticationError("No pending authorization. Call get_authorize_url first.")

        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "code_verifier": self._pkce.verifier,
        }
        token = await self._token_request(data, "Token exchange failed")
        self._pkce = None
        await self._store_token(token)
        return token

    async def refresh_token(self) -> Token:
        """
        Refresh the access token using the refresh token.

        Returns:
            The refreshed token (with the old refresh token kept if Spotify did not rotate it)

        Raises:
            AuthenticationError: If there is no refresh token or the refresh fails
        """
        async with self._refresh_lock:
            return await self._refresh_locked()

    async def auto_reauth(self) -> Optional[Token]:
        """
        Refresh the token if it has expired.

        Returns:
            The new token if a refresh happened, None otherwise

        Raises:
            AuthenticationError: If there is no token or the refresh fails
        """
        async with self._refresh_lock:
            if self._token is None:
                raise AuthenticationError("No token available")
            if not self._token.is_expired():
                return None
            self.logger.debug("Access token expired, refreshing")
            return await self._refresh_locked()

    async def _refresh_locked(self) -> Token:
        if self._token is None or not self._token.refresh_token:
            raise AuthenticationError("No refresh token available")

        data = {
            "grant_type": "refresh_token",
            "refresh_token": self._token.refresh_token,
            "client_id": self.client_id,
        }
        token = await self._token_request(data, "Token refresh failed", previous=self._token)
        await self._store_token(token)
        self.logger.info("Access token refreshed")
        return token

    async def _store_token(self, token: Token) -> None:
        self._token = token
        if self.on_token_updated is None:
            return
        try:
            await self.on_token_updated(token)
        except Exception as e:
            self.logger.warning(f"Could not persist refreshed token: {e}")

    async def _token_request(self, data: Dict[str, str], failure: str, previous: Optional[Token] = None) -> Token:
        """
        POST a form to the token endpoint.

        Args:
            data: Form fields
            failure: Message prefix used for errors
            previous: Token being refreshed, if any

        Returns:
            Parsed token

        Raises:
            AuthenticationError: On any failure
        """
        self.logger.debug(f"Token request: POST {self.token_url} grant_type={data['grant_type']}")
        try:
            session = self._get_session()
            async with session.post(
                self.token_url,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            ) as response:
                response_text = await response.text()
                self.logger.debug(f"Token response status: {response.status}")

                if response.status != 200:
                    raise AuthenticationError(f"{failure}: {self._describe_error(response.status, response_text)}")

                try:
                    result = json.loads(response_text)
                    return Token.from_response(result, previous=previous)
                except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                    self.logger.error(f"Invalid token response: {response_text[:200]}")
                    raise AuthenticationError(f"{failure}: invalid token response") from e
        except asyncio.TimeoutError as e:
            self.logger.error("Token request timed out")
            raise AuthenticationError(f"{failure}: request timed out") from e
        except aiohttp.ClientError as e:
            self.logger.error(f"Token request error: {str(e)}")
            raise AuthenticationError(f"{failure}: {str(e)}") from e

    @staticmethod
    def _describe_error(status: int, text: str) -> str:
        try:
            body = json.loads(text)
        except json.JSONDecodeError:
            return f"HTTP {status}"
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                return f"HTTP {status} {error.get('message', '')}".strip()
            if error:
                description = body.get("error_description")
                return f"HTTP {status} {error}" + (f" ({description})" if description else "")
        return f"HTTP {status}"

    async def _request(self, method: str, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """
        Make an authenticated request to the Web API.

        Args:
            method: HTTP method
            endpoint: Endpoint path below the API base URL
            params: Query parameters

        Returns:
            Parsed JSON body, or None for an empty (204) response

        Raises:
            AuthenticationError: If there is no token
            APIError: If the API returns an error status
            ConnectionError: If there's a connection error
        """
        if self._token is None:
            raise AuthenticationError("No token available")

        if not endpoint.startswith('/'):
            endpoint = '/' + endpoint
        url = f"{self.api_base_url}{endpoint}"
        headers = {"Authorization": f"{self._token.token_type} {self._token.access_token}"}

        self.logger.debug(f"API request: {method} {url} params={params}")

        try:
            session = self._get_session()
            async with session.request(method, url, params=params, headers=headers) as response:
                if response.status == 204:
                    return None

                response_text = await response.text()

                if response.status >= 400:
                    retry_after = response.headers.get("Retry-After")
                    raise APIError(
                        f"{method} {endpoint} failed: {self._describe_error(response.status, response_text)}",
                        response.status,
                        int(retry_after) if retry_after and retry_after.isdigit() else None,
                    )

                if not response_text.strip():
                    return None

                try:
                    return json.loads(response_text)
                except json.JSONDecodeError:
                    self.logger.error(f"Failed to parse response as JSON: {response_text[:500]}")
                    raise APIError(f"Invalid JSON response from {endpoint}", response.status)
        except asyncio.TimeoutError as e:
            self.logger.debug(f"Request timed out: {method} {endpoint}")
            raise ConnectionError(f"Request timed out: {method} {endpoint}") from e
        except aiohttp.ClientError as e:
            self.logger.debug(f"Connection error: {str(e)}")
            raise ConnectionError(f"Connection error: {str(e)}") from e

    async def current_playing(self) -> Optional[CurrentlyPlaying]:
        """
        Get the user's currently playing track or episode.

        Returns:
            The playback context, or None when nothing is playing
        """
        data = await self._request(
            "GET", "/me/player/currently-playing", params={"additional_types": "episode"}
        )
        if data is None:
            return None
        try:
            return CurrentlyPlaying.model_validate(data)
        except ValueError as e:
            self.logger.debug(f"Unparseable playback context: {data}")
            raise APIError(f"Invalid playback context: {e}") from e
