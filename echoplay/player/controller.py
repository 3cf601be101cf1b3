"""
Playback controller.

Owns the single active track and the playback state machine:

    IDLE -> LOADING -> PLAYING <-> PAUSED -> ENDED
                          ^                    |
                          +--------------------+

Selecting a track moves to LOADING from any state. Position and duration
come only from device timing events; there is no local clock.

Device events carry the id of the track they were produced for. Events for
any other track (a late timeupdate from the previous song) are dropped.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from echoplay.core import InvalidInputError, PlaybackRejectedError
from echoplay.core.events import EventBus, PlaybackStatusEvent, event_bus

if TYPE_CHECKING:
    from echoplay.core.models import Track
    from echoplay.player.device import AudioDevice

logger = logging.getLogger(__name__)

DEFAULT_VOLUME = 0.7


class PlaybackStatus(Enum):
    """Possible states of the playback state machine."""

    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"


@dataclass
class PlaybackState:
    """Current playback state. Mutated only by PlaybackController."""

    status: PlaybackStatus = PlaybackStatus.IDLE
    track: Track | None = None
    position_seconds: float = 0.0
    duration_seconds: float = 0.0
    volume: float = DEFAULT_VOLUME
    muted: bool = False
    error: str | None = None

    @property
    def progress_fraction(self) -> float:
        if self.duration_seconds <= 0:
            return 0.0
        return max(0.0, min(1.0, self.position_seconds / self.duration_seconds))

    @property
    def effective_volume(self) -> float:
        return 0.0 if self.muted else self.volume


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _finite_or_zero(value: float | None) -> float:
    if value is None or not math.isfinite(value) or value < 0:
        return 0.0
    return float(value)


class PlaybackController:
    """
    Drives one AudioDevice through the playback state machine.

    The controller never talks to the network; it receives Track values and
    the device's timing events.
    """

    def __init__(
        self,
        device: AudioDevice,
        bus: EventBus | None = None,
        *,
        volume: float = DEFAULT_VOLUME,
    ) -> None:
        """
        Initialize an idle controller.

        Args:
            device: The audio output. Nothing else may send it commands.
            bus: Event bus for playback.status events (defaults to the global bus).
            volume: Initial volume in [0, 1].
        """
        self._device = device
        self._bus = bus or event_bus
        self.state = PlaybackState(volume=_clamp(volume, 0.0, 1.0))
        # Bumped by every play or pause request; a play confirmation only
        # counts if no newer request was made while it was pending.
        self._attempt = 0

    @property
    def track(self) -> Track | None:
        return self.state.track

    @property
    def status(self) -> PlaybackStatus:
        return self.state.status

    @property
    def progress_fraction(self) -> float:
        return self.state.progress_fraction

    @property
    def effective_volume(self) -> float:
        return self.state.effective_volume

    def _is_current(self, track_id: str) -> bool:
        return self.state.track is not None and self.state.track.id == track_id

    # =========================================================================
    # Transport
    # =========================================================================

    async def select_track(self, track: Track) -> None:
        """Load `track` and start it. Ends PLAYING, or PAUSED with an error if refused."""
        logger.info("Selecting track %s (%s)", track.id, track.title or "untitled")
        self.state.track = track
        self.state.status = PlaybackStatus.LOADING
        self.state.position_seconds = 0.0
        self.state.duration_seconds = 0.0
        self.state.error = None
        await self._publish()

        await self._device.load(track)
        await self._device.set_volume(self.effective_volume)
        await self._start(track)

    async def _start(self, track: Track) -> None:
        self._attempt += 1
        attempt = self._attempt
        try:
            await self._device.play()
        except PlaybackRejectedError as e:
            if attempt != self._attempt or not self._is_current(track.id):
                return
            logger.warning("Playback of %s rejected: %s", track.id, e)
            self.state.status = PlaybackStatus.PAUSED
            self.state.error = str(e) or "Playback was rejected"
            await self._publish()
            return

        # Another track or a pause may have come in while we waited.
        if attempt != self._attempt or not self._is_current(track.id):
            logger.debug("Play confirmation for superseded request on %s ignored", track.id)
            return
        self.state.status = PlaybackStatus.PLAYING
        self.state.error = None
        await self._publish()

    async def toggle_play_pause(self) -> None:
        """Flip between PLAYING and PAUSED. No-op without a track."""
        track = self.state.track
        if track is None:
            return

        if self.state.status in (PlaybackStatus.PLAYING, PlaybackStatus.LOADING):
            self._attempt += 1
            await self._device.pause()
            self.state.status = PlaybackStatus.PAUSED
            logger.info("Paused %s", track.id)
            await self._publish()
            return

        if self.state.status is PlaybackStatus.ENDED:
            self.state.position_seconds = 0.0
            await self._device.seek(0.0)
        logger.info("Resuming %s", track.id)
        await self._start(track)

    async def seek(self, seconds: float) -> float:
        """
        Jump to `seconds`, clamped to the track duration.

        Returns:
            The position actually sought to.

        Raises:
            InvalidInputError: Duration still unknown, or `seconds` not a finite number.
        """
        if self.state.track is None or self.state.duration_seconds <= 0:
            raise InvalidInputError("Cannot seek before the duration is known")
        if not math.isfinite(seconds):
            raise InvalidInputError(f"Invalid seek position: {seconds!r}")

        position = _clamp(seconds, 0.0, self.state.duration_seconds)
        self.state.position_seconds = position
        await self._device.seek(position)
        await self._publish()
        return position

    async def set_volume(self, volume: float) -> None:
        """
        Set the volume, clamped to [0, 1]. A non-zero volume also unmutes.

        Raises:
            InvalidInputError: `volume` is not a finite number.
        """
        if not math.isfinite(volume):
            raise InvalidInputError(f"Invalid volume: {volume!r}")
        self.state.volume = _clamp(volume, 0.0, 1.0)
        if self.state.volume > 0:
            self.state.muted = False
        await self._device.set_volume(self.effective_volume)
        await self._publish()

    async def toggle_mute(self) -> None:
        """Mute or unmute; the volume level is kept for unmuting."""
        self.state.muted = not self.state.muted
        await self._device.set_volume(self.effective_volume)
        await self._publish()

    async def stop(self) -> None:
        """Stop playback and forget the track (logout)."""
        if self.state.track is None:
            return
        await self._device.stop()
        self.state.track = None
        self.state.status = PlaybackStatus.IDLE
        self.state.position_seconds = 0.0
        self.state.duration_seconds = 0.0
        self.state.error = None
        logger.info("Playback stopped")
        await self._publish()

    # =========================================================================
    # Device events
    # =========================================================================

    async def on_time_update(self, track_id: str, position: float, duration: float | None) -> bool:
        """
        Device reported the playhead position.

        Returns:
            False if the event belongs to another track and was ignored.
        """
        if not self._is_current(track_id):
            logger.debug("Ignoring timeupdate for stale track %s", track_id)
            return False

        duration_seconds = _finite_or_zero(duration)
        position_seconds = _finite_or_zero(position)
        if duration_seconds > 0:
            position_seconds = min(position_seconds, duration_seconds)

        self.state.duration_seconds = duration_seconds
        self.state.position_seconds = position_seconds
        await self._publish()
        return True

    async def on_playing(self, track_id: str) -> bool:
        """Device started or resumed playback on its own (e.g. a media key)."""
        if not self._is_current(track_id):
            return False
        if self.state.status is not PlaybackStatus.PLAYING:
            self.state.status = PlaybackStatus.PLAYING
            self.state.error = None
            await self._publish()
        return True

    async def on_paused(self, track_id: str) -> bool:
        """Device paused on its own."""
        if not self._is_current(track_id):
            return False
        if self.state.status is PlaybackStatus.PLAYING:
            self.state.status = PlaybackStatus.PAUSED
            await self._publish()
        return True

    async def on_ended(self, track_id: str) -> bool:
        """
        Device reached the end of the track.

        The controller does not advance; whoever owns the queue order decides
        what plays next and calls select_track().
        """
        if not self._is_current(track_id):
            logger.debug("Ignoring ended for stale track %s", track_id)
            return False
        self.state.status = PlaybackStatus.ENDED
        self.state.position_seconds = self.state.duration_seconds
        logger.info("Track %s ended", track_id)
        await self._publish()
        return True

    # =========================================================================
    # Internals
    # =========================================================================

    def to_dict(self) -> dict[str, object]:
        state = self.state
        return {
            "status": state.status.value,
            "track": state.track.to_dict() if state.track else None,
            "position": state.position_seconds,
            "duration": state.duration_seconds,
            "progress": state.progress_fraction,
            "volume": state.volume,
            "muted": state.muted,
            "effective_volume": state.effective_volume,
            "error": state.error,
        }

    async def _publish(self) -> None:
        state = self.state
        await self._bus.publish(
            PlaybackStatusEvent(
                status=state.status.value,
                track_id=state.track.id if state.track else None,
                position_seconds=state.position_seconds,
                duration_seconds=state.duration_seconds,
                volume=state.volume,
                muted=state.muted,
                error=state.error or "",
            )
        )
