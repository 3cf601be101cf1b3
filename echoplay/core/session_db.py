"""
Session persistence.

Keeps the session token and username across restarts in a one-row SQLite
table. The schema is versioned with `PRAGMA user_version`; migrations are
forward-only.

Usage:
    db = SessionDb("echoplay-session.sqlite3")
    await db.open()
    await db.ensure_schema()
    session = await db.load()
    ...
    await db.close()
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Final

import aiosqlite

from echoplay.core.models import Session

# Bump when you change the schema and add a migration in `_migrate()`.
SCHEMA_VERSION: Final[int] = 1


class SessionDb:
    """
    Async access layer for the persisted session.

    Notes:
    - Only one session is stored; saving replaces it.
    - Designed to be injected into SessionContext.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self) -> None:
        if self._conn is not None:
            return
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("SessionDb is not open. Call await db.open() first.")
        return self._conn

    async def ensure_schema(self) -> None:
        """Create or migrate schema to current version."""
        conn = self._require_conn()

        cursor = await conn.execute("PRAGMA user_version;")
        row = await cursor.fetchone()
        current = int(row[0]) if row is not None else 0

        if current > SCHEMA_VERSION:
            raise RuntimeError(
                f"Session database schema version {current} is newer than supported {SCHEMA_VERSION}."
            )

        if current == SCHEMA_VERSION:
            return

        await self._migrate(conn, from_version=current)
        await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION};")
        await conn.commit()

    async def _migrate(self, conn: aiosqlite.Connection, *, from_version: int) -> None:
        # v0 -> v1
        if from_version < 1:
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS session (
                    slot INTEGER PRIMARY KEY CHECK (slot = 1),
                    username TEXT NOT NULL DEFAULT '',
                    token TEXT NOT NULL,
                    updated_at INTEGER NOT NULL
                )
                """
            )

    async def load(self) -> Session | None:
        """Return the stored session, or None if nobody is logged in."""
        conn = self._require_conn()
        cursor = await conn.execute("SELECT username, token FROM session WHERE slot = 1")
        row = await cursor.fetchone()
        if row is None or not row["token"]:
            return None
        return Session(token=row["token"], username=row["username"])

    async def save(self, session: Session) -> None:
        """Store `session`, replacing any previous one."""
        conn = self._require_conn()
        await conn.execute(
            """
            INSERT INTO session(slot, username, token, updated_at)
            VALUES (1, :username, :token, :updated_at)
            ON CONFLICT(slot) DO UPDATE SET
                username   = excluded.username,
                token      = excluded.token,
                updated_at = excluded.updated_at
            """,
            {
                "username": session.username,
                "token": session.token,
                "updated_at": int(time.time()),
            },
        )
        await conn.commit()

    async def clear(self) -> None:
        """Forget the stored session."""
        conn = self._require_conn()
        await conn.execute("DELETE FROM session")
        await conn.commit()
