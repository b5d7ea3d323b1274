"""Durable submission history using aiosqlite."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol

import aiosqlite

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    code TEXT NOT NULL,
    created_at TEXT NOT NULL
);
"""


class HistoryBackend(Protocol):
    """Where submitted lines are kept between sessions."""

    async def append(self, line: str) -> None: ...

    async def load_all(self, limit: int | None = None) -> list[str]: ...


class SQLiteHistory:
    """Async SQLite history store."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open database connection and ensure schema exists."""
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("History database not connected. Call connect() first.")
        return self._conn

    async def append(self, line: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        await self.conn.execute(
            "INSERT INTO history (code, created_at) VALUES (?, ?)",
            (line, now),
        )
        await self.conn.commit()

    async def load_all(self, limit: int | None = None) -> list[str]:
        """Return stored lines oldest first; with *limit*, only the newest *limit*."""
        if limit is not None:
            if limit <= 0:
                return []
            cursor = await self.conn.execute(
                "SELECT code FROM (SELECT id, code FROM history ORDER BY id DESC LIMIT ?) ORDER BY id ASC",
                (limit,),
            )
        else:
            cursor = await self.conn.execute("SELECT code FROM history ORDER BY id ASC")
        rows = await cursor.fetchall()
        return [row["code"] for row in rows]

    async def prune(self, keep: int) -> int:
        """Delete all but the newest *keep* rows. Returns the number removed."""
        cursor = await self.conn.execute(
            "DELETE FROM history WHERE id NOT IN (SELECT id FROM history ORDER BY id DESC LIMIT ?)",
            (max(keep, 0),),
        )
        await self.conn.commit()
        return cursor.rowcount
