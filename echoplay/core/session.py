"""
Session context.

Holds the current auth token and username. The catalog client reads the token
from here for every authenticated call; the library store invalidates the
session when the backend rejects it. No other component writes to it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from echoplay.core.events import EventBus, SessionInvalidatedEvent, SessionStartedEvent, event_bus
from echoplay.core.models import Session

if TYPE_CHECKING:
    from echoplay.core.session_db import SessionDb

logger = logging.getLogger(__name__)


class SessionContext:
    """
    The logged-in user's session.

    Attributes:
        session: The active Session, or None when logged out.
    """

    def __init__(self, db: SessionDb | None = None, bus: EventBus | None = None) -> None:
        """
        Initialize an empty (logged out) session context.

        Args:
            db: Optional persistence; when given, the session survives restarts.
            bus: Event bus for session.* events (defaults to the global bus).
        """
        self._db = db
        self._bus = bus or event_bus
        self.session: Session | None = None

    @property
    def is_logged_in(self) -> bool:
        return self.session is not None

    @property
    def username(self) -> str | None:
        return self.session.username if self.session else None

    def current_token(self) -> str | None:
        """Get the bearer token, or None when logged out."""
        return self.session.token if self.session else None

    async def restore(self) -> bool:
        """
        Load a persisted session, if any.

        Returns:
            True if a session was restored.
        """
        if self._db is None:
            return False
        stored = await self._db.load()
        if stored is None:
            return False
        self.session = stored
        logger.info("Restored session for %s", stored.username or "<unknown>")
        await self._bus.publish(SessionStartedEvent(username=stored.username))
        return True

    async def establish(self, token: str, username: str = "") -> Session:
        """
        Start a session with a freshly issued token.

        Raises:
            ValueError: If the token is empty.
        """
        if not token:
            raise ValueError("Cannot establish a session without a token")
        self.session = Session(token=token, username=username)
        if self._db is not None:
            await self._db.save(self.session)
        logger.info("Session established for %s", username or "<unknown>")
        await self._bus.publish(SessionStartedEvent(username=username))
        return self.session

    async def invalidate(self, reason: str = "rejected") -> None:
        """
        Destroy the session. Safe to call when already logged out.

        Args:
            reason: "rejected" when the backend refused the token, "logout" otherwise.
        """
        if self.session is None:
            return
        username = self.session.username
        self.session = None
        if self._db is not None:
            await self._db.clear()
        logger.info("Session for %s invalidated (%s)", username or "<unknown>", reason)
        await self._bus.publish(SessionInvalidatedEvent(username=username, reason=reason))

    async def logout(self) -> None:
        await self.invalidate(reason="logout")
