"""
Domain models (value objects) and JSON parsing helpers.

This module is intentionally lightweight:
- No HTTP knowledge
- No mutable state
- Pure dataclasses + helper functions

Backend payloads are parsed leniently: the Echo backend has shipped several
field names for the same thing over time (`cover_image` vs `cover_url`,
`url` vs `audio_url`), and ids may arrive as integers.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping


@dataclass(frozen=True, slots=True, eq=False)
class Track:
    """
    A catalog track.

    Identity is the catalog id: two Track values with the same id are equal
    even if their metadata differs (the backend may have edited the title).
    `title` and `artist` stay None when the backend omits them.
    """

    id: str
    title: str | None = None
    artist: str | None = None
    cover_image_url: str | None = None
    audio_url: str | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Track):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "cover_image_url": self.cover_image_url,
            "audio_url": self.audio_url,
        }


@dataclass(frozen=True, slots=True)
class Playlist:
    """
    A user playlist.

    `track_ids` keeps insertion order; there is no manual reordering.
    `pending` marks a placeholder inserted before the backend confirmed creation.
    """

    id: str
    name: str
    track_ids: tuple[str, ...] = ()
    pending: bool = False

    def with_track(self, track_id: str) -> Playlist:
        """Return a copy with `track_id` appended (no-op if already a member)."""
        if track_id in self.track_ids:
            return self
        return Playlist(self.id, self.name, (*self.track_ids, track_id), self.pending)

    def without_track(self, track_id: str) -> Playlist:
        """Return a copy with `track_id` removed."""
        if track_id not in self.track_ids:
            return self
        return Playlist(
            self.id,
            self.name,
            tuple(t for t in self.track_ids if t != track_id),
            self.pending,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "track_ids": list(self.track_ids),
            "pending": self.pending,
        }


@dataclass(frozen=True, slots=True)
class Scope:
    """What the library is showing: the whole catalog (Home) or one playlist."""

    playlist_id: str | None = None

    @classmethod
    def home(cls) -> Scope:
        return cls(None)

    @classmethod
    def playlist(cls, playlist_id: str) -> Scope:
        return cls(str(playlist_id))

    @property
    def is_home(self) -> bool:
        return self.playlist_id is None

    def __str__(self) -> str:
        return "home" if self.playlist_id is None else f"playlist:{self.playlist_id}"


@dataclass(frozen=True, slots=True)
class Session:
    """An authenticated session against the backend."""

    token: str
    username: str = ""


class LoadStatus(Enum):
    """Load state of a remotely fetched collection."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class Outcome(Enum):
    """Result tag of a mutating library operation."""

    APPLIED = "applied"
    CONFLICT = "conflict"
    FAILED = "failed"


@dataclass(frozen=True)
class MutationResult:
    """
    Tagged result returned by every mutating LibraryStore operation.

    `previous` is the snapshot of the displayed raw tracks taken before the
    mutation; on FAILED the store has already restored what it could, and the
    caller may use the snapshot for its own bookkeeping.
    """

    outcome: Outcome
    previous: tuple[Track, ...] = ()
    error: Exception | None = None
    playlist: Playlist | None = None

    @property
    def applied(self) -> bool:
        return self.outcome is Outcome.APPLIED

    @property
    def conflict(self) -> bool:
        return self.outcome is Outcome.CONFLICT

    @property
    def failed(self) -> bool:
        return self.outcome is Outcome.FAILED

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"outcome": self.outcome.value}
        if self.error is not None:
            result["error"] = str(self.error)
        if self.playlist is not None:
            result["playlist"] = self.playlist.to_dict()
        return result


# =============================================================================
# JSON parsing
# =============================================================================


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def track_from_json(data: Mapping[str, Any]) -> Track:
    """
    Build a Track from a backend payload.

    Raises:
        ValueError: If the payload has no id.
    """
    track_id = data.get("id")
    if track_id is None:
        raise ValueError(f"Track payload without id: {data!r}")
    return Track(
        id=str(track_id),
        title=_optional_str(data.get("title")),
        artist=_optional_str(data.get("artist")),
        cover_image_url=_optional_str(
            _first(data, "cover_image_url", "cover_image", "cover_url")
        ),
        audio_url=_optional_str(_first(data, "audio_url", "url", "file_url")),
    )


def playlist_from_json(data: Mapping[str, Any]) -> Playlist:
    """
    Build a Playlist from a backend payload.

    Membership may come as `track_ids` or as `tracks` (ids or track objects).

    Raises:
        ValueError: If the payload has no id.
    """
    playlist_id = data.get("id")
    if playlist_id is None:
        raise ValueError(f"Playlist payload without id: {data!r}")

    raw_members: Iterable[Any] = _first(data, "track_ids", "tracks") or ()
    track_ids: list[str] = []
    for member in raw_members:
        member_id = member.get("id") if isinstance(member, Mapping) else member
        if member_id is None:
            continue
        member_id = str(member_id)
        if member_id not in track_ids:
            track_ids.append(member_id)

    return Playlist(
        id=str(playlist_id),
        name=str(data.get("name") or ""),
        track_ids=tuple(track_ids),
    )


def dedupe_tracks(tracks: Iterable[Track]) -> tuple[Track, ...]:
    """Drop repeated ids, keeping the first occurrence."""
    seen: set[str] = set()
    result: list[Track] = []
    for track in tracks:
        if track.id in seen:
            continue
        seen.add(track.id)
        result.append(track)
    return tuple(result)


__all__ = [
    "LoadStatus",
    "MutationResult",
    "Outcome",
    "Playlist",
    "Scope",
    "Session",
    "Track",
    "dedupe_tracks",
    "playlist_from_json",
    "track_from_json",
]
