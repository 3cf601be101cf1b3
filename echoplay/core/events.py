"""
Event Bus for Echoplay.

This module provides a simple pub/sub event system for decoupled communication
between components. The stores announce state changes here; the control API
and the application facade listen.

Event types:
- library.tracks: Displayed tracks changed (scope switch, fetch result, mutation)
- library.playlists: Playlist list changed
- playback.status: Playback state changed (status/position/volume/mute)
- session.started: A session was established
- session.invalidated: The session ended (logout or rejected token)

Usage:
    from echoplay.core.events import event_bus

    async def on_playback(event: PlaybackStatusEvent) -> None:
        print(f"Now {event.status} at {event.position_seconds:.1f}s")

    await event_bus.subscribe("playback.status", on_playback)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)

# Type alias for event handlers
EventHandler = Callable[["Event"], Coroutine[Any, Any, None]]


@dataclass
class Event:
    """Base class for all events."""

    event_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""
        return {"type": self.event_type}


@dataclass
class LibraryTracksEvent(Event):
    """Fired when the displayed track sequence may have changed."""

    event_type: str = field(default="library.tracks", init=False)
    scope: str = ""
    status: str = ""  # idle, loading, ready, failed
    count: int = 0
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        result = {
            "type": self.event_type,
            "scope": self.scope,
            "status": self.status,
            "count": self.count,
        }
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class LibraryPlaylistsEvent(Event):
    """Fired when the playlist list changed."""

    event_type: str = field(default="library.playlists", init=False)
    status: str = ""
    count: int = 0
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        result = {
            "type": self.event_type,
            "status": self.status,
            "count": self.count,
        }
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class PlaybackStatusEvent(Event):
    """Fired when the playback state changes."""

    event_type: str = field(default="playback.status", init=False)
    status: str = ""  # idle, loading, playing, paused, ended
    track_id: str | None = None
    position_seconds: float = 0.0
    duration_seconds: float = 0.0
    volume: float = 0.0
    muted: bool = False
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.event_type,
            "status": self.status,
            "track_id": self.track_id,
            "position": self.position_seconds,
            "duration": self.duration_seconds,
            "volume": self.volume,
            "muted": self.muted,
        }
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class SessionStartedEvent(Event):
    """Fired when a session is established or restored."""

    event_type: str = field(default="session.started", init=False)
    username: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.event_type, "username": self.username}


@dataclass
class SessionInvalidatedEvent(Event):
    """Fired when the session ends.

    `reason` is "logout" for a user-initiated logout and "rejected" when the
    backend refused the token.
    """

    event_type: str = field(default="session.invalidated", init=False)
    username: str = ""
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "username": self.username,
            "reason": self.reason,
        }


class EventBus:
    """
    Simple async pub/sub event bus.

    Supports:
    - Multiple handlers per event type
    - Wildcard subscriptions (e.g., "library.*")
    - Async handlers
    - Error isolation (one handler failing doesn't affect others)
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Event type to subscribe to. Use "*" suffix for wildcards.
            handler: Async function to call when event is published.
        """
        async with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
            logger.debug("Subscribed to %s: %s", event_type, handler)

    async def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """
        Unsubscribe a handler from an event type.

        Returns True if handler was found and removed.
        """
        async with self._lock:
            handlers = self._handlers.get(event_type)
            if handlers and handler in handlers:
                handlers.remove(handler)
                logger.debug("Unsubscribed from %s: %s", event_type, handler)
                return True
            return False

    async def publish(self, event: Event) -> int:
        """
        Publish an event to all subscribed handlers.

        Args:
            event: The event to publish.

        Returns:
            Number of handlers that received the event.
        """
        event_type = event.event_type
        handlers_called = 0

        async with self._lock:
            matching_handlers: list[EventHandler] = list(self._handlers.get(event_type, ()))

            # Wildcard matches (e.g., "library.*" matches "library.tracks")
            for pattern, handlers in self._handlers.items():
                if pattern.endswith(".*"):
                    prefix = pattern[:-2]
                    if event_type.startswith(prefix + "."):
                        matching_handlers.extend(handlers)
                elif pattern == "*":
                    matching_handlers.extend(handlers)

        # Call handlers outside of lock
        for handler in matching_handlers:
            try:
                await handler(event)
                handlers_called += 1
            except Exception as e:
                logger.exception("Error in event handler for %s: %s", event_type, e)

        if handlers_called > 0:
            logger.debug("Published %s to %d handlers", event_type, handlers_called)

        return handlers_called

    async def clear(self) -> None:
        """Remove all subscriptions."""
        async with self._lock:
            self._handlers.clear()
            logger.debug("Cleared all event subscriptions")


# Global event bus instance
event_bus = EventBus()
