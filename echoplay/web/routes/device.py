"""
Device bridge routes.

The audio element lives in the rendering surface. It collects transport
commands by long-polling and reports what the element actually did:

- GET  /api/device/commands: queued commands (load, play, pause, seek, volume, stop)
- POST /api/device/events: playing, rejected, paused, timeupdate, ended
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, HTTPException, Query

if TYPE_CHECKING:
    from echoplay.player.controller import PlaybackController
    from echoplay.player.device import RemoteAudioDevice

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/device", tags=["device"])

_device: RemoteAudioDevice | None = None
_player: PlaybackController | None = None

EVENT_TYPES = ("playing", "rejected", "paused", "timeupdate", "ended")


def register_device_routes(app, device: RemoteAudioDevice, player: PlaybackController) -> None:
    """Register device bridge routes with the FastAPI app."""
    global _device, _player
    _device = device
    _player = player
    app.include_router(router)


def _optional_float(body: dict[str, Any], key: str) -> float | None:
    value = body.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise HTTPException(status_code=400, detail=f"'{key}' must be a number")
    # NaN/Infinity duration while metadata loads is treated as unknown.
    return float(value) if math.isfinite(value) else None


@router.get("/commands")
async def get_commands(timeout: float = Query(25.0, ge=0.0, le=60.0)) -> dict[str, Any]:
    """Long-poll for pending transport commands."""
    if _device is None:
        raise HTTPException(status_code=503, detail="Client not initialized")
    commands = await _device.next_commands(timeout=timeout)
    return {"commands": [c.to_dict() for c in commands]}


@router.post("/events")
async def post_event(body: dict[str, Any]) -> dict[str, Any]:
    """
    Report a device event for a track.

    Returns `accepted: false` when the event belongs to a track that is no
    longer loaded.
    """
    if _device is None or _player is None:
        raise HTTPException(status_code=503, detail="Client not initialized")

    event_type = body.get("type")
    track_id = body.get("track_id")
    if event_type not in EVENT_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown event type: {event_type!r}")
    if not track_id:
        raise HTTPException(status_code=400, detail="Missing 'track_id'")
    track_id = str(track_id)

    if event_type == "playing":
        # Either the answer to a pending play command or a spontaneous resume.
        accepted = _device.confirm_play(track_id)
        if accepted:
            await _player.on_playing(track_id)
    elif event_type == "rejected":
        accepted = _device.reject_play(track_id, str(body.get("reason") or ""))
    elif event_type == "paused":
        accepted = await _player.on_paused(track_id)
    elif event_type == "timeupdate":
        position = _optional_float(body, "position") or 0.0
        duration = _optional_float(body, "duration")
        accepted = await _player.on_time_update(track_id, position, duration)
    else:
        accepted = await _player.on_ended(track_id)

    if not accepted:
        logger.debug("Dropped %s event for stale track %s", event_type, track_id)
    return {"accepted": accepted}
