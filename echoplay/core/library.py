"""
Library store: the tracks on screen and the user's playlists.

The store owns two remotely fetched collections and keeps them consistent
while requests are in flight:

- The displayed track sequence for the current scope (Home or one playlist),
  filtered client-side by the search query.
- The playlist list, including placeholders for playlists being created.

Fetch results are always applied wholesale. Each scope fetch is tagged with a
generation number; a response is applied only if its generation is still the
current one when it arrives (latest wins). Nothing is ever aborted, stale
responses are simply dropped on arrival.

Membership changes are optimistic and return a MutationResult
(APPLIED / CONFLICT / FAILED) instead of raising.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Sequence

from echoplay.core import (
    AuthenticationError,
    CatalogError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
)
from echoplay.core.events import EventBus, LibraryPlaylistsEvent, LibraryTracksEvent, event_bus
from echoplay.core.models import (
    LoadStatus,
    MutationResult,
    Outcome,
    Playlist,
    Scope,
    Track,
    dedupe_tracks,
)

if TYPE_CHECKING:
    from echoplay.catalog.client import CatalogClient
    from echoplay.core.session import SessionContext

logger = logging.getLogger(__name__)


def _field_matches(value: str | None, needle: str) -> bool:
    if not isinstance(value, str):
        return False
    return needle in value.casefold()


def filter_tracks(tracks: Iterable[Track], query: str | None) -> tuple[Track, ...]:
    """
    Filter tracks by case-insensitive substring match on title OR artist.

    An empty (or whitespace-only) query matches everything. A missing title or
    artist never matches, and never raises.
    """
    tracks = tuple(tracks)
    needle = (query or "").casefold()
    if not needle.strip():
        return tracks
    return tuple(
        t for t in tracks if _field_matches(t.title, needle) or _field_matches(t.artist, needle)
    )


@dataclass(frozen=True, slots=True)
class ScopeRequest:
    """Tag attached to an in-flight scope fetch."""

    scope: Scope
    generation: int
    token: str | None


class LibraryStore:
    """
    In-memory view of the catalog and the user's playlists.

    Attributes:
        status: Load state of the displayed tracks.
        error: Message of the last failed track fetch (None unless FAILED).
        playlists_status: Load state of the playlist list.
        playlists_error: Message of the last failed playlist fetch.
    """

    def __init__(
        self,
        catalog: CatalogClient,
        session: SessionContext,
        bus: EventBus | None = None,
    ) -> None:
        self._catalog = catalog
        self._session = session
        self._bus = bus or event_bus

        self._scope = Scope.home()
        self._generation = 0
        self._raw_tracks: tuple[Track, ...] = ()
        self._search_query = ""
        self.status = LoadStatus.IDLE
        self.error: str | None = None

        # Every track seen in a successful fetch, for resolving playlist members.
        self._known: dict[str, Track] = {}

        self._playlists: tuple[Playlist, ...] = ()
        self._playlists_generation = 0
        # Bumped by reset(); creations that straddle a reset are dropped.
        self._epoch = 0
        self.playlists_status = LoadStatus.IDLE
        self.playlists_error: str | None = None

    # =========================================================================
    # Read side
    # =========================================================================

    @property
    def scope(self) -> Scope:
        return self._scope

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def raw_tracks(self) -> tuple[Track, ...]:
        return self._raw_tracks

    @property
    def search_query(self) -> str:
        return self._search_query

    @property
    def displayed_tracks(self) -> tuple[Track, ...]:
        """The raw tracks filtered by the search query (re-derived on every read)."""
        return filter_tracks(self._raw_tracks, self._search_query)

    @property
    def playlists(self) -> tuple[Playlist, ...]:
        return self._playlists

    def track(self, track_id: str) -> Track:
        """
        Get a known track by id, for handing to the playback controller.

        Raises:
            NotFoundError: The id is not in the current view nor in any earlier fetch.
        """
        for t in self._raw_tracks:
            if t.id == track_id:
                return t
        known = self._known.get(track_id)
        if known is None:
            raise NotFoundError(f"Track {track_id} is not known")
        return known

    def playlist(self, playlist_id: str) -> Playlist:
        for p in self._playlists:
            if p.id == playlist_id:
                return p
        raise NotFoundError(f"Playlist {playlist_id} is not known")

    def playlist_members(self, playlist_id: str) -> tuple[Track, ...]:
        """Resolve a playlist's track ids against known tracks; unknown ids are skipped."""
        playlist = self.playlist(playlist_id)
        return tuple(self._known[t] for t in playlist.track_ids if t in self._known)

    # =========================================================================
    # Scope and search
    # =========================================================================

    async def set_scope(self, scope: Scope) -> bool:
        """
        Switch to `scope` and fetch its tracks.

        Returns:
            True if this fetch's result was applied, False if it failed or was
            superseded by a later scope change.
        """
        self._scope = scope
        self._generation += 1
        request = ScopeRequest(scope, self._generation, self._session.current_token())

        self._raw_tracks = ()
        self.status = LoadStatus.LOADING
        self.error = None
        logger.info("Library scope -> %s (generation %d)", scope, request.generation)
        await self._publish_tracks()

        return await self._load(request)

    async def refresh(self) -> bool:
        """Re-fetch the current scope; the displayed tracks stay visible until it lands."""
        self._generation += 1
        request = ScopeRequest(self._scope, self._generation, self._session.current_token())
        self.status = LoadStatus.LOADING
        await self._publish_tracks()
        return await self._load(request)

    def set_search_query(self, text: str | None) -> None:
        """Update the search query. Pure and synchronous; no network call."""
        self._search_query = text or ""

    def _is_current(self, request: ScopeRequest) -> bool:
        return request.generation == self._generation and request.scope == self._scope

    async def _load(self, request: ScopeRequest) -> bool:
        try:
            if request.scope.is_home:
                tracks = await self._catalog.list_tracks()
            else:
                tracks = await self._catalog.list_playlist_tracks(request.scope.playlist_id)
        except CatalogError as e:
            if isinstance(e, AuthenticationError):
                await self._handle_auth_failure(request.token)
            if not self._is_current(request):
                logger.debug(
                    "Dropping failed fetch for %s (generation %d, current %d)",
                    request.scope,
                    request.generation,
                    self._generation,
                )
                return False
            logger.warning("Fetching tracks for %s failed: %s", request.scope, e)
            self._raw_tracks = ()
            self.status = LoadStatus.FAILED
            self.error = str(e) or type(e).__name__
            await self._publish_tracks()
            return False

        if not self._is_current(request):
            logger.debug(
                "Dropping stale tracks for %s (generation %d, current %d)",
                request.scope,
                request.generation,
                self._generation,
            )
            return False

        self._raw_tracks = dedupe_tracks(tracks)
        self._remember(self._raw_tracks)
        self.status = LoadStatus.READY
        self.error = None
        logger.info("Loaded %d tracks for %s", len(self._raw_tracks), request.scope)
        await self._publish_tracks()
        return True

    # =========================================================================
    # Playlists
    # =========================================================================

    async def refresh_playlists(self) -> bool:
        """
        Fetch the playlist list and replace it wholesale.

        Placeholders of creations still in flight are kept at the end.

        Returns:
            True if the fetch succeeded and was applied.
        """
        self._playlists_generation += 1
        generation = self._playlists_generation
        token = self._session.current_token()
        self.playlists_status = LoadStatus.LOADING
        await self._publish_playlists()

        try:
            playlists = await self._catalog.list_playlists()
        except CatalogError as e:
            if isinstance(e, AuthenticationError):
                await self._handle_auth_failure(token)
            if generation != self._playlists_generation:
                return False
            logger.warning("Fetching playlists failed: %s", e)
            self._playlists = ()
            self.playlists_status = LoadStatus.FAILED
            self.playlists_error = str(e) or type(e).__name__
            await self._publish_playlists()
            return False

        if generation != self._playlists_generation:
            logger.debug("Dropping stale playlist list (generation %d)", generation)
            return False

        pending = tuple(p for p in self._playlists if p.pending)
        self._playlists = tuple(playlists) + pending
        self.playlists_status = LoadStatus.READY
        self.playlists_error = None
        logger.info("Loaded %d playlists", len(playlists))
        await self._publish_playlists()
        return True

    async def create_playlist(self, name: str) -> MutationResult:
        """
        Create a playlist, showing a placeholder until the backend answers.

        Raises:
            InvalidInputError: The trimmed name is empty (nothing is sent).
        """
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("Playlist name must not be empty")

        previous = self._raw_tracks
        token = self._session.current_token()
        epoch = self._epoch
        placeholder = Playlist(id=f"pending-{uuid.uuid4().hex[:12]}", name=name, pending=True)
        self._playlists = (*self._playlists, placeholder)
        await self._publish_playlists()

        try:
            created = await self._catalog.create_playlist(name)
        except CatalogError as e:
            if isinstance(e, AuthenticationError):
                await self._handle_auth_failure(token)
            logger.warning("Creating playlist %r failed: %s", name, e)
            self._playlists = tuple(p for p in self._playlists if p.id != placeholder.id)
            await self._publish_playlists()
            return MutationResult(Outcome.FAILED, previous=previous, error=e)

        if not created.name:
            created = Playlist(created.id, name, created.track_ids)

        if epoch != self._epoch:
            logger.debug("Dropping playlist %s created before a library reset", created.id)
            return MutationResult(Outcome.APPLIED, previous=previous, playlist=created)

        if any(p.id == created.id for p in self._playlists):
            # A refresh already brought the new playlist in.
            self._playlists = tuple(p for p in self._playlists if p.id != placeholder.id)
        elif any(p.id == placeholder.id for p in self._playlists):
            self._playlists = tuple(
                created if p.id == placeholder.id else p for p in self._playlists
            )
        else:
            self._playlists = (*self._playlists, created)
        logger.info("Created playlist %r (%s)", created.name, created.id)
        await self._publish_playlists()
        return MutationResult(Outcome.APPLIED, previous=previous, playlist=created)

    async def add_track_to_playlist(self, track_id: str, playlist_id: str) -> MutationResult:
        """
        Add a track to a playlist.

        The displayed sequence only changes when that playlist is being viewed.
        A track that is already a member yields CONFLICT, not FAILED.
        """
        previous = self._raw_tracks
        token = self._session.current_token()

        try:
            await self._catalog.add_track_to_playlist(playlist_id, track_id)
        except ConflictError as e:
            logger.info("Track %s already in playlist %s", track_id, playlist_id)
            await self._record_membership(playlist_id, track_id, member=True)
            return MutationResult(Outcome.CONFLICT, previous=previous, error=e)
        except CatalogError as e:
            if isinstance(e, AuthenticationError):
                await self._handle_auth_failure(token)
            logger.warning("Adding track %s to playlist %s failed: %s", track_id, playlist_id, e)
            return MutationResult(Outcome.FAILED, previous=previous, error=e)

        await self._record_membership(playlist_id, track_id, member=True)

        if self._scope == Scope.playlist(playlist_id):
            track = self._known.get(track_id)
            if track is not None and track not in self._raw_tracks:
                self._raw_tracks = (*self._raw_tracks, track)
                await self._publish_tracks()

        logger.info("Added track %s to playlist %s", track_id, playlist_id)
        return MutationResult(Outcome.APPLIED, previous=previous)

    async def remove_track_from_playlist(self, track_id: str) -> MutationResult:
        """
        Remove a track from the playlist being viewed.

        The track disappears immediately; if the backend refuses, it is put back
        at its original position.

        Raises:
            InvalidInputError: The current scope is Home.
            NotFoundError: The track is not in the displayed playlist.
        """
        scope = self._scope
        if scope.is_home or scope.playlist_id is None:
            raise InvalidInputError("Tracks can only be removed while viewing a playlist")

        previous = self._raw_tracks
        index = _index_of(previous, track_id)
        if index is None:
            raise NotFoundError(f"Track {track_id} is not in playlist {scope.playlist_id}")

        generation = self._generation
        token = self._session.current_token()
        track = previous[index]
        self._raw_tracks = previous[:index] + previous[index + 1 :]
        await self._publish_tracks()

        try:
            await self._catalog.remove_track_from_playlist(scope.playlist_id, track_id)
        except CatalogError as e:
            if isinstance(e, AuthenticationError):
                await self._handle_auth_failure(token)
            logger.warning(
                "Removing track %s from playlist %s failed: %s", track_id, scope.playlist_id, e
            )
            if self._generation == generation and track not in self._raw_tracks:
                position = min(index, len(self._raw_tracks))
                self._raw_tracks = (
                    self._raw_tracks[:position] + (track,) + self._raw_tracks[position:]
                )
                await self._publish_tracks()
            return MutationResult(Outcome.FAILED, previous=previous, error=e)

        await self._record_membership(scope.playlist_id, track_id, member=False)
        logger.info("Removed track %s from playlist %s", track_id, scope.playlist_id)
        return MutationResult(Outcome.APPLIED, previous=previous)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def reset(self) -> None:
        """Forget everything (logout). In-flight responses are dropped on arrival."""
        self._generation += 1
        self._playlists_generation += 1
        self._epoch += 1
        self._scope = Scope.home()
        self._raw_tracks = ()
        self._known.clear()
        self._search_query = ""
        self.status = LoadStatus.IDLE
        self.error = None
        self._playlists = ()
        self.playlists_status = LoadStatus.IDLE
        self.playlists_error = None
        logger.info("Library reset")
        await self._publish_tracks()
        await self._publish_playlists()

    # =========================================================================
    # Internals
    # =========================================================================

    def _remember(self, tracks: Iterable[Track]) -> None:
        for t in tracks:
            self._known[t.id] = t

    async def _record_membership(self, playlist_id: str, track_id: str, *, member: bool) -> None:
        changed = False
        updated: list[Playlist] = []
        for p in self._playlists:
            if p.id == playlist_id:
                new = p.with_track(track_id) if member else p.without_track(track_id)
                changed = changed or new is not p
                p = new
            updated.append(p)
        if changed:
            self._playlists = tuple(updated)
            await self._publish_playlists()

    async def _handle_auth_failure(self, token: str | None) -> None:
        # Only drop the session the failed request was made with.
        if token is not None and self._session.current_token() == token:
            await self._session.invalidate()

    async def _publish_tracks(self) -> None:
        await self._bus.publish(
            LibraryTracksEvent(
                scope=str(self._scope),
                status=self.status.value,
                count=len(self._raw_tracks),
                error=self.error or "",
            )
        )

    async def _publish_playlists(self) -> None:
        await self._bus.publish(
            LibraryPlaylistsEvent(
                status=self.playlists_status.value,
                count=len(self._playlists),
                error=self.playlists_error or "",
            )
        )


def _index_of(tracks: Sequence[Track], track_id: str) -> int | None:
    for i, t in enumerate(tracks):
        if t.id == track_id:
            return i
    return None
