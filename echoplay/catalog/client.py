"""
HTTP client for the Echo catalog/playlist backend.

Pure request/response: every method maps one backend endpoint, converts the
payload into domain models and translates failures into the CatalogError
hierarchy. It keeps no library state; the only thing it reads from elsewhere
is the bearer token from the SessionContext.

Error mapping:
- network error / timeout      -> TransportError
- 401 / 403                    -> AuthenticationError
- 409, or 400 saying "already" -> ConflictError
- any other status >= 400      -> RequestRejectedError
- non-list body on a list call -> ResponseFormatError
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from echoplay.core import (
    AuthenticationError,
    CatalogError,
    ConflictError,
    RequestRejectedError,
    ResponseFormatError,
    TransportError,
)
from echoplay.core.models import Playlist, Track, playlist_from_json, track_from_json

if TYPE_CHECKING:
    from echoplay.core.session import SessionContext

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://echo-backend-0rw1.onrender.com"
DEFAULT_TIMEOUT_SECONDS = 15.0


def _segment(value: str) -> str:
    """Escape an id for use as one URL path segment."""
    return quote(str(value), safe="")


def _error_message(response: httpx.Response) -> str:
    """Pull the human-readable error out of a backend error body."""
    try:
        data = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(data, dict):
        for key in ("error", "msg", "message", "detail"):
            value = data.get(key)
            if value:
                return str(value)
    return ""


class CatalogClient:
    """
    Async client for the Echo backend.

    Usage:
        client = CatalogClient(session, base_url="https://echo.example")
        tracks = await client.list_tracks()
        await client.close()
    """

    def __init__(
        self,
        session: SessionContext,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            session: Source of the bearer token.
            base_url: Backend root URL.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (tests inject a MockTransport).
        """
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={"Accept": "application/json"},
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        """
        Send one request and translate failures.

        Raises:
            AuthenticationError: No token for an authenticated call, or 401/403.
            ConflictError: The change is already in effect.
            RequestRejectedError: Any other error status.
            TransportError: The request never got a response.
        """
        headers: dict[str, str] = {}
        if authenticated:
            token = self._session.current_token()
            if not token:
                raise AuthenticationError("Not logged in")
            headers["Authorization"] = f"Bearer {token}"

        client = await self._get_client()
        try:
            response = await client.request(method, path, json=json, headers=headers)
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise TransportError(f"{method} {path} failed: {e}") from e

        status = response.status_code
        if status < 400:
            logger.debug("%s %s -> %d", method, path, status)
            return response

        message = _error_message(response)
        logger.info("%s %s -> %d %s", method, path, status, message)

        if status in (401, 403):
            raise AuthenticationError(message or f"HTTP {status}")
        if status == 409 or (status == 400 and "already" in message.lower()):
            raise ConflictError(message or "Already present")
        raise RequestRejectedError(status, message)

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ResponseFormatError(f"Invalid JSON from {response.request.url}") from e

    def _json_list(self, response: httpx.Response) -> list[Any]:
        data = self._json(response)
        if not isinstance(data, list):
            raise ResponseFormatError(
                f"Expected a list from {response.request.url}, got {type(data).__name__}"
            )
        return data

    def _parse_tracks(self, response: httpx.Response) -> list[Track]:
        tracks: list[Track] = []
        for item in self._json_list(response):
            if not isinstance(item, dict):
                raise ResponseFormatError(f"Unexpected track entry: {item!r}")
            try:
                tracks.append(track_from_json(item))
            except ValueError as e:
                raise ResponseFormatError(str(e)) from e
        return tracks

    # =========================================================================
    # Authentication
    # =========================================================================

    async def login(self, username: str, password: str) -> str:
        """
        Exchange credentials for an access token.

        Returns:
            The access token.

        Raises:
            AuthenticationError: Credentials refused.
            ResponseFormatError: The backend answered without a token.
        """
        response = await self._request(
            "POST",
            "/login",
            json={"username": username, "password": password},
            authenticated=False,
        )
        data = self._json(response)
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise ResponseFormatError("Login response without access_token")
        logger.info("Logged in as %s", username)
        return str(token)

    async def register(self, username: str, email: str, password: str) -> None:
        """Create an account. The user still has to log in afterwards."""
        await self._request(
            "POST",
            "/register",
            json={"username": username, "email": email, "password": password},
            authenticated=False,
        )
        logger.info("Registered account %s", username)

    # =========================================================================
    # Tracks
    # =========================================================================

    async def list_tracks(self) -> list[Track]:
        """Fetch the whole catalog."""
        response = await self._request("GET", "/tracks")
        return self._parse_tracks(response)

    async def list_playlist_tracks(self, playlist_id: str) -> list[Track]:
        """Fetch the member tracks of one playlist."""
        response = await self._request("GET", f"/playlists/{_segment(playlist_id)}/tracks")
        return self._parse_tracks(response)

    # =========================================================================
    # Playlists
    # =========================================================================

    async def list_playlists(self) -> list[Playlist]:
        """Fetch the user's playlists."""
        response = await self._request("GET", "/playlists")
        playlists: list[Playlist] = []
        for item in self._json_list(response):
            if not isinstance(item, dict):
                raise ResponseFormatError(f"Unexpected playlist entry: {item!r}")
            try:
                playlists.append(playlist_from_json(item))
            except ValueError as e:
                raise ResponseFormatError(str(e)) from e
        return playlists

    async def create_playlist(self, name: str) -> Playlist:
        """Create a playlist and return it with its backend-assigned id."""
        response = await self._request("POST", "/playlists", json={"name": name})
        data = self._json(response)
        if not isinstance(data, dict):
            raise ResponseFormatError("Create playlist response is not an object")
        # Some backend versions wrap the created entity.
        if "id" not in data and isinstance(data.get("playlist"), dict):
            data = data["playlist"]
        try:
            return playlist_from_json(data)
        except ValueError as e:
            raise ResponseFormatError(str(e)) from e

    async def add_track_to_playlist(self, playlist_id: str, track_id: str) -> None:
        """
        Add a track to a playlist.

        Raises:
            ConflictError: The track is already a member.
        """
        await self._request(
            "POST",
            f"/playlists/{_segment(playlist_id)}/tracks",
            json={"track_id": track_id},
        )

    async def remove_track_from_playlist(self, playlist_id: str, track_id: str) -> None:
        """Remove a track from a playlist."""
        path = f"/playlists/{_segment(playlist_id)}/tracks/{_segment(track_id)}"
        await self._request("DELETE", path)


__all__ = ["CatalogClient", "CatalogError", "DEFAULT_BASE_URL"]
