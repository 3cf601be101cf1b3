"""
Audio output devices.

The PlaybackController drives exactly one AudioDevice. A device accepts
transport commands; it reports what actually happened (playback began, time
advanced, track ended) by calling back into the controller with the id of the
track the event belongs to.

RemoteAudioDevice is the device used by the application: the actual audio
element lives in the rendering surface (a browser), so commands are queued for
the surface to collect by long-polling, and the surface posts device events
back through the control API.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from echoplay.core import PlaybackRejectedError
from echoplay.core.models import Track

logger = logging.getLogger(__name__)

# How long a play request may stay unconfirmed before it counts as rejected.
DEFAULT_PLAY_CONFIRM_TIMEOUT = 10.0

# Queued commands a new command makes pointless. Keeps the queue bounded while
# no surface is polling.
_TRANSPORT = frozenset({"play", "pause"})
_TRACK = frozenset({"load", "play", "pause", "seek", "stop"})
_SUPERSEDES: dict[str, frozenset[str]] = {
    "load": _TRACK,
    "stop": _TRACK,
    "play": _TRANSPORT,
    "pause": _TRANSPORT,
    "seek": frozenset({"seek"}),
    "volume": frozenset({"volume"}),
}


class AudioDevice(Protocol):
    """Transport interface the PlaybackController drives."""

    async def load(self, track: Track) -> None:
        """Point the output at `track` (does not start playback)."""

    async def play(self) -> None:
        """
        Start or resume playback; returns once playback has begun.

        Raises:
            PlaybackRejectedError: The output refused to start.
        """

    async def pause(self) -> None: ...

    async def seek(self, seconds: float) -> None: ...

    async def set_volume(self, volume: float) -> None:
        """Set the effective output volume (0 when muted)."""

    async def stop(self) -> None:
        """Stop and unload the current track."""


@dataclass
class DeviceCommand:
    """A transport command waiting for the rendering surface."""

    action: str  # load, play, pause, seek, volume, stop
    track_id: str | None = None
    sequence: int = 0
    params: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "action": self.action,
            "track_id": self.track_id,
            "seq": self.sequence,
        }
        result.update(self.params)
        return result


class RemoteAudioDevice:
    """
    Audio device whose output lives in a remote rendering surface.

    Commands are buffered until the surface fetches them with
    `next_commands()`. A play request stays pending until the surface reports
    `confirm_play()` or `reject_play()` for the loaded track, or until the
    confirmation timeout expires.
    """

    def __init__(self, play_confirm_timeout: float = DEFAULT_PLAY_CONFIRM_TIMEOUT) -> None:
        self._play_confirm_timeout = play_confirm_timeout
        self._pending: list[DeviceCommand] = []
        self._sequence = 0
        self._waiter = asyncio.Event()
        self._track_id: str | None = None
        self._play_future: asyncio.Future[None] | None = None

    @property
    def track_id(self) -> str | None:
        return self._track_id

    def _enqueue(self, action: str, **params: Any) -> None:
        superseded = _SUPERSEDES.get(action, frozenset())
        self._pending = [c for c in self._pending if c.action not in superseded]

        self._sequence += 1
        command = DeviceCommand(
            action=action,
            track_id=self._track_id,
            sequence=self._sequence,
            params=params,
        )
        self._pending.append(command)
        self._waiter.set()
        logger.debug("Queued device command %s (seq %d)", action, command.sequence)

    def _abandon_play(self, reason: str) -> None:
        if self._play_future is not None and not self._play_future.done():
            self._play_future.set_exception(PlaybackRejectedError(reason))
            # Nobody may be awaiting it any more.
            self._play_future.exception()
        self._play_future = None

    async def load(self, track: Track) -> None:
        self._abandon_play("superseded by another track")
        self._track_id = track.id
        self._enqueue("load", url=track.audio_url)

    async def play(self) -> None:
        if self._track_id is None:
            raise PlaybackRejectedError("Nothing loaded")

        self._abandon_play("superseded by another play request")
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._play_future = future
        self._enqueue("play")

        try:
            await asyncio.wait_for(asyncio.shield(future), timeout=self._play_confirm_timeout)
        except asyncio.TimeoutError as e:
            if self._play_future is future:
                self._play_future = None
            raise PlaybackRejectedError("Playback start was not confirmed") from e

    async def pause(self) -> None:
        self._abandon_play("paused")
        self._enqueue("pause")

    async def seek(self, seconds: float) -> None:
        self._enqueue("seek", position=seconds)

    async def set_volume(self, volume: float) -> None:
        self._enqueue("volume", volume=volume)

    async def stop(self) -> None:
        self._abandon_play("stopped")
        self._enqueue("stop")
        self._track_id = None

    # -------------------------------------------------------------------------
    # Surface side
    # -------------------------------------------------------------------------

    def confirm_play(self, track_id: str) -> bool:
        """The surface reports playback began. Returns False for a stale track."""
        if track_id != self._track_id:
            return False
        if self._play_future is not None and not self._play_future.done():
            self._play_future.set_result(None)
        self._play_future = None
        return True

    def reject_play(self, track_id: str, reason: str = "") -> bool:
        """The surface reports playback was refused. Returns False for a stale track."""
        if track_id != self._track_id:
            return False
        self._abandon_play(reason or "Playback was rejected by the output")
        return True

    async def next_commands(self, timeout: float = 25.0) -> list[DeviceCommand]:
        """
        Long-poll for queued commands.

        Returns immediately if commands are pending; otherwise waits up to
        `timeout` seconds and returns whatever arrived (possibly nothing).
        """
        if not self._pending:
            self._waiter.clear()
            try:
                await asyncio.wait_for(self._waiter.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                pass
        commands = self._pending
        self._pending = []
        return commands
