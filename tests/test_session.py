"""
Tests for echoplay.core.session and echoplay.core.session_db.

Tests cover:
- SessionDb schema creation and save/load/clear
- SessionContext establish / invalidate / restore
- session.* events
"""

from __future__ import annotations

from pathlib import Path

import pytest

from echoplay.core.events import Event, EventBus
from echoplay.core.models import Session
from echoplay.core.session import SessionContext
from echoplay.core.session_db import SCHEMA_VERSION, SessionDb


@pytest.fixture
async def db() -> SessionDb:
    """Create an in-memory session database."""
    db = SessionDb(":memory:")
    await db.open()
    await db.ensure_schema()
    yield db
    await db.close()


class TestSessionDb:
    """Tests for the persistence layer."""

    async def test_open_close(self) -> None:
        db = SessionDb(":memory:")
        assert not db.is_open

        await db.open()
        assert db.is_open

        await db.close()
        assert not db.is_open

    async def test_requires_open(self) -> None:
        db = SessionDb(":memory:")
        with pytest.raises(RuntimeError):
            await db.load()

    async def test_schema_version(self, db: SessionDb) -> None:
        conn = db._require_conn()
        cursor = await conn.execute("PRAGMA user_version;")
        row = await cursor.fetchone()
        assert row[0] == SCHEMA_VERSION

    async def test_empty_load(self, db: SessionDb) -> None:
        assert await db.load() is None

    async def test_save_replaces(self, db: SessionDb) -> None:
        await db.save(Session(token="t1", username="alice"))
        await db.save(Session(token="t2", username="bob"))

        assert await db.load() == Session(token="t2", username="bob")

    async def test_clear(self, db: SessionDb) -> None:
        await db.save(Session(token="t1", username="alice"))
        await db.clear()
        assert await db.load() is None

    async def test_survives_reopen(self, tmp_path: Path) -> None:
        path = tmp_path / "session.sqlite3"
        first = SessionDb(path)
        await first.open()
        await first.ensure_schema()
        await first.save(Session(token="t1", username="alice"))
        await first.close()

        second = SessionDb(path)
        await second.open()
        await second.ensure_schema()
        assert await second.load() == Session(token="t1", username="alice")
        await second.close()


class TestSessionContext:
    """Tests for the in-memory session context."""

    async def test_starts_logged_out(self) -> None:
        ctx = SessionContext(bus=EventBus())
        assert not ctx.is_logged_in
        assert ctx.current_token() is None
        assert ctx.username is None

    async def test_establish(self) -> None:
        ctx = SessionContext(bus=EventBus())
        session = await ctx.establish("tok", "alice")

        assert session.token == "tok"
        assert ctx.is_logged_in
        assert ctx.current_token() == "tok"
        assert ctx.username == "alice"

    async def test_establish_requires_token(self) -> None:
        ctx = SessionContext(bus=EventBus())
        with pytest.raises(ValueError):
            await ctx.establish("", "alice")
        assert not ctx.is_logged_in

    async def test_invalidate_is_idempotent(self) -> None:
        bus = EventBus()
        reasons: list[str] = []

        async def on_invalidated(event: Event) -> None:
            reasons.append(event.reason)

        await bus.subscribe("session.invalidated", on_invalidated)
        ctx = SessionContext(bus=bus)
        await ctx.establish("tok", "alice")

        await ctx.invalidate()
        await ctx.invalidate()

        assert not ctx.is_logged_in
        assert reasons == ["rejected"]

    async def test_logout_reason(self) -> None:
        bus = EventBus()
        events: list[Event] = []

        async def on_session(event: Event) -> None:
            events.append(event)

        await bus.subscribe("session.*", on_session)
        ctx = SessionContext(bus=bus)
        await ctx.establish("tok", "alice")
        await ctx.logout()

        assert [e.event_type for e in events] == ["session.started", "session.invalidated"]
        assert events[1].reason == "logout"
        assert events[1].username == "alice"

    async def test_persisted_across_contexts(self, db: SessionDb) -> None:
        first = SessionContext(db=db, bus=EventBus())
        await first.establish("tok", "alice")

        second = SessionContext(db=db, bus=EventBus())
        assert await second.restore() is True
        assert second.current_token() == "tok"
        assert second.username == "alice"

    async def test_logout_clears_persisted(self, db: SessionDb) -> None:
        ctx = SessionContext(db=db, bus=EventBus())
        await ctx.establish("tok", "alice")
        await ctx.logout()

        assert await db.load() is None
        assert await SessionContext(db=db, bus=EventBus()).restore() is False

    async def test_restore_without_db(self) -> None:
        assert await SessionContext(bus=EventBus()).restore() is False
