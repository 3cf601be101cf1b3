"""
State change feed for the rendering surface.

- GET /api/events?since=N: events numbered after N (long-poll)

Each event carries its `type` (library.tracks, library.playlists,
playback.status, session.started, session.invalidated) and a `seq` number.
`last` in the response is the number to pass as `since` next time.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, HTTPException, Query

if TYPE_CHECKING:
    from echoplay.web.feed import EventFeed

router = APIRouter(prefix="/api", tags=["events"])

_feed: EventFeed | None = None


def register_event_routes(app, feed: EventFeed) -> None:
    """Register the event feed route with the FastAPI app."""
    global _feed
    _feed = feed
    app.include_router(router)


@router.get("/events")
async def get_events(
    since: int = Query(0, ge=0),
    timeout: float = Query(25.0, ge=0.0, le=60.0),
) -> dict[str, Any]:
    """Long-poll for state changes after `since`."""
    if _feed is None:
        raise HTTPException(status_code=503, detail="Client not initialized")
    events = await _feed.next_events(since=since, timeout=timeout)
    # Falls back to the feed position so a poller from before a restart resyncs.
    last = events[-1]["seq"] if events else _feed.last_sequence
    return {"events": events, "last": last}
