"""
REST API Routes for Echoplay.

Provides the endpoints the rendering surface uses to read state and forward
user intents:
- /api/session*: Login, registration, logout
- /api/library*: Scope, search, displayed tracks, removal from a playlist
- /api/playlists*: Playlist list, creation, membership
- /api/player*: Transport controls
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, HTTPException

from echoplay.core import AuthenticationError, CatalogError, RequestRejectedError
from echoplay.core.models import Scope

if TYPE_CHECKING:
    from echoplay.catalog.client import CatalogClient
    from echoplay.core.library import LibraryStore
    from echoplay.core.session import SessionContext
    from echoplay.player.controller import PlaybackController

logger = logging.getLogger(__name__)

router = APIRouter(tags=["api"])

# References set during route registration
_session: SessionContext | None = None
_catalog: CatalogClient | None = None
_library: LibraryStore | None = None
_player: PlaybackController | None = None


def register_api_routes(
    app,
    session: SessionContext,
    catalog: CatalogClient,
    library: LibraryStore,
    player: PlaybackController,
) -> None:
    """
    Register API routes with the FastAPI app.

    Args:
        app: FastAPI application instance
        session: Session context (login state)
        catalog: Catalog client, used directly only for login/register
        library: Library store
        player: Playback controller
    """
    global _session, _catalog, _library, _player
    _session = session
    _catalog = catalog
    _library = library
    _player = player
    app.include_router(router)


def _require_library() -> LibraryStore:
    if _library is None or _session is None:
        raise HTTPException(status_code=503, detail="Client not initialized")
    if not _session.is_logged_in:
        raise HTTPException(status_code=401, detail="Not logged in")
    return _library


def _require_player() -> PlaybackController:
    if _player is None:
        raise HTTPException(status_code=503, detail="Client not initialized")
    return _player


def _require_str(body: dict[str, Any], key: str) -> str:
    value = body.get(key)
    if value is None or value == "":
        raise HTTPException(status_code=400, detail=f"Missing '{key}'")
    return str(value)


def _require_number(body: dict[str, Any], key: str) -> float:
    value = body.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise HTTPException(status_code=400, detail=f"'{key}' must be a number")
    if not math.isfinite(value):
        raise HTTPException(status_code=400, detail=f"'{key}' must be finite")
    return float(value)


def _library_state(library: LibraryStore) -> dict[str, Any]:
    displayed = library.displayed_tracks
    return {
        "scope": {"playlist_id": library.scope.playlist_id},
        "query": library.search_query,
        "status": library.status.value,
        "error": library.error,
        "count": len(displayed),
        "tracks": [t.to_dict() for t in displayed],
    }


def _playlists_state(library: LibraryStore) -> dict[str, Any]:
    return {
        "status": library.playlists_status.value,
        "error": library.playlists_error,
        "playlists": [p.to_dict() for p in library.playlists],
    }


# =============================================================================
# Session
# =============================================================================


@router.get("/api/session")
async def get_session() -> dict[str, Any]:
    """Whether someone is logged in, and who."""
    if _session is None:
        raise HTTPException(status_code=503, detail="Client not initialized")
    return {"logged_in": _session.is_logged_in, "username": _session.username}


@router.post("/api/session/login")
async def login(body: dict[str, Any]) -> dict[str, Any]:
    """Exchange credentials for a token and start the session."""
    if _session is None or _catalog is None:
        raise HTTPException(status_code=503, detail="Client not initialized")

    username = _require_str(body, "username")
    password = _require_str(body, "password")
    try:
        token = await _catalog.login(username, password)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e) or "Authentication failed") from e
    except RequestRejectedError as e:
        # Backends answer bad credentials with a plain 400 as well.
        status = 401 if 400 <= e.status_code < 500 else 502
        raise HTTPException(status_code=status, detail=e.message or "Authentication failed") from e
    except CatalogError as e:
        raise HTTPException(status_code=502, detail=str(e) or "Authentication failed") from e

    await _session.establish(token, username)
    return {"logged_in": True, "username": username}


@router.post("/api/session/register")
async def register(body: dict[str, Any]) -> dict[str, Any]:
    """Create an account; the user logs in afterwards."""
    if _catalog is None:
        raise HTTPException(status_code=503, detail="Client not initialized")

    username = _require_str(body, "username")
    email = _require_str(body, "email")
    password = _require_str(body, "password")
    try:
        await _catalog.register(username, email, password)
    except CatalogError as e:
        raise HTTPException(status_code=400, detail=str(e) or "Registration failed") from e
    return {"registered": True, "username": username}


@router.post("/api/session/logout")
async def logout() -> dict[str, Any]:
    if _session is None:
        raise HTTPException(status_code=503, detail="Client not initialized")
    await _session.logout()
    return {"logged_in": False}


# =============================================================================
# Library
# =============================================================================


@router.get("/api/library")
async def get_library() -> dict[str, Any]:
    """Current scope, query and displayed tracks."""
    return _library_state(_require_library())


@router.post("/api/library/scope")
async def set_scope(body: dict[str, Any]) -> dict[str, Any]:
    """Switch to Home (`playlist_id` null) or a playlist, and fetch its tracks."""
    library = _require_library()
    playlist_id = body.get("playlist_id")
    scope = Scope.home() if playlist_id in (None, "") else Scope.playlist(str(playlist_id))
    await library.set_scope(scope)
    return _library_state(library)


@router.post("/api/library/search")
async def set_search(body: dict[str, Any]) -> dict[str, Any]:
    library = _require_library()
    query = body.get("query") or ""
    library.set_search_query(str(query))
    return _library_state(library)


@router.post("/api/library/refresh")
async def refresh_library() -> dict[str, Any]:
    library = _require_library()
    await library.refresh()
    return _library_state(library)


@router.delete("/api/library/tracks/{track_id}")
async def remove_from_viewed_playlist(track_id: str) -> dict[str, Any]:
    """Remove a track from the playlist currently being viewed."""
    library = _require_library()
    result = await library.remove_track_from_playlist(track_id)
    return {**result.to_dict(), "library": _library_state(library)}


# =============================================================================
# Playlists
# =============================================================================


@router.get("/api/playlists")
async def list_playlists() -> dict[str, Any]:
    return _playlists_state(_require_library())


@router.post("/api/playlists/refresh")
async def refresh_playlists() -> dict[str, Any]:
    library = _require_library()
    await library.refresh_playlists()
    return _playlists_state(library)


@router.post("/api/playlists")
async def create_playlist(body: dict[str, Any]) -> dict[str, Any]:
    library = _require_library()
    result = await library.create_playlist(str(body.get("name") or ""))
    return result.to_dict()


@router.get("/api/playlists/{playlist_id}")
async def get_playlist(playlist_id: str) -> dict[str, Any]:
    """A playlist with its members resolved against known tracks."""
    library = _require_library()
    playlist = library.playlist(playlist_id)
    return {
        **playlist.to_dict(),
        "tracks": [t.to_dict() for t in library.playlist_members(playlist_id)],
    }


@router.post("/api/playlists/{playlist_id}/tracks")
async def add_to_playlist(playlist_id: str, body: dict[str, Any]) -> dict[str, Any]:
    library = _require_library()
    track_id = _require_str(body, "track_id")
    result = await library.add_track_to_playlist(track_id, playlist_id)
    return result.to_dict()


# =============================================================================
# Player
# =============================================================================


@router.get("/api/player")
async def get_player() -> dict[str, Any]:
    return _require_player().to_dict()


@router.post("/api/player/select")
async def select_track(body: dict[str, Any]) -> dict[str, Any]:
    """Hand a displayed track to the player and start it."""
    library = _require_library()
    player = _require_player()
    track = library.track(_require_str(body, "track_id"))
    await player.select_track(track)
    return player.to_dict()


@router.post("/api/player/toggle")
async def toggle_play_pause() -> dict[str, Any]:
    player = _require_player()
    await player.toggle_play_pause()
    return player.to_dict()


@router.post("/api/player/seek")
async def seek(body: dict[str, Any]) -> dict[str, Any]:
    player = _require_player()
    await player.seek(_require_number(body, "seconds"))
    return player.to_dict()


@router.post("/api/player/volume")
async def set_volume(body: dict[str, Any]) -> dict[str, Any]:
    player = _require_player()
    await player.set_volume(_require_number(body, "volume"))
    return player.to_dict()


@router.post("/api/player/mute")
async def toggle_mute() -> dict[str, Any]:
    player = _require_player()
    await player.toggle_mute()
    return player.to_dict()
