"""
Shared test doubles.

FakeCatalog stands in for CatalogClient: it keeps backend state in memory and
can hold any call open behind a Gate, so tests can decide the order in which
concurrent requests resolve. FakeDevice records transport commands and
answers play() immediately unless told otherwise.
"""

from __future__ import annotations

import asyncio

import pytest

from echoplay.core import ConflictError, PlaybackRejectedError
from echoplay.core.events import EventBus
from echoplay.core.models import Playlist, Track
from echoplay.core.session import SessionContext


class Gate:
    """Holds a fake call open until released."""

    def __init__(self) -> None:
        self.entered = asyncio.Event()
        self._release = asyncio.Event()

    def release(self) -> None:
        self._release.set()

    async def pass_through(self) -> None:
        self.entered.set()
        await self._release.wait()


class FakeCatalog:
    """In-memory catalog backend with the CatalogClient interface."""

    def __init__(self) -> None:
        self.tracks: list[Track] = []
        self.playlist_tracks: dict[str, list[Track]] = {}
        self.playlists: list[Playlist] = []
        self.calls: list[str] = []
        self.gates: dict[str, Gate] = {}
        self.errors: dict[str, Exception] = {}
        self._next_id = 100

    def gate(self, key: str) -> Gate:
        gate = Gate()
        self.gates[key] = gate
        return gate

    async def _answer(self, key: str) -> None:
        self.calls.append(key)
        gate = self.gates.pop(key, None)
        if gate is not None:
            await gate.pass_through()
        error = self.errors.get(key)
        if error is not None:
            raise error

    async def list_tracks(self) -> list[Track]:
        await self._answer("tracks")
        return list(self.tracks)

    async def list_playlist_tracks(self, playlist_id: str) -> list[Track]:
        await self._answer(f"playlist:{playlist_id}")
        return list(self.playlist_tracks.get(playlist_id, []))

    async def list_playlists(self) -> list[Playlist]:
        await self._answer("playlists")
        return list(self.playlists)

    async def create_playlist(self, name: str) -> Playlist:
        await self._answer("create")
        self._next_id += 1
        playlist = Playlist(id=str(self._next_id), name=name)
        self.playlists.append(playlist)
        return playlist

    async def add_track_to_playlist(self, playlist_id: str, track_id: str) -> None:
        await self._answer(f"add:{playlist_id}:{track_id}")
        members = self.playlist_tracks.setdefault(playlist_id, [])
        if any(t.id == track_id for t in members):
            raise ConflictError("Track already in playlist")
        members.append(Track(id=track_id))

    async def remove_track_from_playlist(self, playlist_id: str, track_id: str) -> None:
        await self._answer(f"remove:{playlist_id}:{track_id}")
        members = self.playlist_tracks.get(playlist_id, [])
        self.playlist_tracks[playlist_id] = [t for t in members if t.id != track_id]


class FakeDevice:
    """AudioDevice that records commands."""

    def __init__(self) -> None:
        self.commands: list[tuple] = []
        self.reject_next: str | None = None
        self.play_gate: Gate | None = None

    def hold_play(self) -> Gate:
        """Keep the next play() pending until the returned gate is released."""
        self.play_gate = Gate()
        return self.play_gate

    async def load(self, track: Track) -> None:
        self.commands.append(("load", track.id))

    async def play(self) -> None:
        self.commands.append(("play",))
        if self.play_gate is not None:
            gate, self.play_gate = self.play_gate, None
            await gate.pass_through()
        if self.reject_next is not None:
            reason, self.reject_next = self.reject_next, None
            raise PlaybackRejectedError(reason)

    async def pause(self) -> None:
        self.commands.append(("pause",))

    async def seek(self, seconds: float) -> None:
        self.commands.append(("seek", seconds))

    async def set_volume(self, volume: float) -> None:
        self.commands.append(("volume", volume))

    async def stop(self) -> None:
        self.commands.append(("stop",))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def bus() -> EventBus:
    """A private event bus so tests never share subscriptions."""
    return EventBus()


@pytest.fixture
async def session(bus: EventBus) -> SessionContext:
    """A logged-in session without persistence."""
    ctx = SessionContext(bus=bus)
    await ctx.establish("token-1", "alice")
    return ctx


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def device() -> FakeDevice:
    return FakeDevice()
