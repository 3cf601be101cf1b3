"""
Event feed for the rendering surface.

The surface renders library, playlist, playback and session state, and it
learns that something changed by long-polling /api/events. The feed listens
on the event bus and keeps the most recent events, each numbered, so a poller
can ask for everything after the last number it saw.

Playback status is published on every time update, so the buffer is bounded;
a poller that falls behind further than that just refetches the full state.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any

from echoplay.core.events import Event, EventBus, event_bus

logger = logging.getLogger(__name__)

# Event types forwarded to the surface.
FEED_PATTERNS = ("library.*", "playback.*", "session.*")

DEFAULT_MAX_EVENTS = 256


class EventFeed:
    """Numbered, bounded buffer of bus events with long-poll delivery."""

    def __init__(self, bus: EventBus | None = None, max_events: int = DEFAULT_MAX_EVENTS) -> None:
        self._bus = bus or event_bus
        self._events: deque[tuple[int, dict[str, Any]]] = deque(maxlen=max_events)
        self._sequence = 0
        self._waiter = asyncio.Event()
        self._attached = False

    @property
    def last_sequence(self) -> int:
        return self._sequence

    async def attach(self) -> None:
        """Start collecting events from the bus."""
        if self._attached:
            return
        for pattern in FEED_PATTERNS:
            await self._bus.subscribe(pattern, self._on_event)
        self._attached = True

    async def detach(self) -> None:
        if not self._attached:
            return
        for pattern in FEED_PATTERNS:
            await self._bus.unsubscribe(pattern, self._on_event)
        self._attached = False

    async def _on_event(self, event: Event) -> None:
        self._sequence += 1
        self._events.append((self._sequence, event.to_dict()))
        self._waiter.set()

    def _after(self, since: int) -> list[dict[str, Any]]:
        return [{**payload, "seq": seq} for seq, payload in self._events if seq > since]

    async def next_events(self, since: int = 0, timeout: float = 25.0) -> list[dict[str, Any]]:
        """
        Long-poll for events numbered after `since`.

        Returns immediately if there are any; otherwise waits up to `timeout`
        seconds and returns whatever arrived (possibly nothing).
        """
        events = self._after(since)
        if events:
            return events

        self._waiter.clear()
        try:
            await asyncio.wait_for(self._waiter.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        return self._after(since)
