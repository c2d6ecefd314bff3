from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Iterable, Sequence

import aiosqlite

from mediscore.catalogue_seed import seed_entries
from mediscore.config import DATABASE_PATH, SEED_CATALOGUE

logger = logging.getLogger(__name__)


class DatabaseAdapter:
    """Narrow async interface over the catalogue store connection."""

    async def execute(self, query: str, params: Sequence | None = None) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def executemany(self, query: str, seq_params: Iterable[Sequence]) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def fetch_one(self, query: str, params: Sequence | None = None):  # pragma: no cover - interface
        raise NotImplementedError

    async def fetch_all(self, query: str, params: Sequence | None = None):  # pragma: no cover - interface
        raise NotImplementedError

    async def commit(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def close(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def executescript(self, script: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError


@dataclass
class SQLiteAdapter(DatabaseAdapter):
    conn: aiosqlite.Connection

    async def execute(self, query: str, params: Sequence | None = None) -> None:
        await self.conn.execute(query, params or ())

    async def executemany(self, query: str, seq_params: Iterable[Sequence]) -> None:
        await self.conn.executemany(query, seq_params)

    async def fetch_one(self, query: str, params: Sequence | None = None):
        cursor = await self.conn.execute(query, params or ())
        return await cursor.fetchone()

    async def fetch_all(self, query: str, params: Sequence | None = None):
        cursor = await self.conn.execute(query, params or ())
        return await cursor.fetchall()

    async def commit(self) -> None:
        await self.conn.commit()

    async def close(self) -> None:
        await self.conn.close()

    async def executescript(self, script: str) -> None:
        await self.conn.executescript(script)


_db: DatabaseAdapter | None = None


async def get_db() -> DatabaseAdapter:
    global _db
    if _db is None:
        conn = await aiosqlite.connect(DATABASE_PATH)
        conn.row_factory = aiosqlite.Row
        _db = SQLiteAdapter(conn)
        logger.info("Connected to SQLite database at %s", DATABASE_PATH)
    return _db


SQLITE_SCHEMA = """
    CREATE TABLE IF NOT EXISTS catalogue_entries (
        kind TEXT NOT NULL,
        key TEXT NOT NULL,
        payload TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (kind, key)
    );
"""


UPSERT_ENTRY = """
    INSERT INTO catalogue_entries (kind, key, payload, updated_at)
    VALUES (?, ?, ?, ?)
    ON CONFLICT(kind, key) DO UPDATE SET payload = excluded.payload, updated_at = excluded.updated_at
"""


async def init_db() -> None:
    db = await get_db()
    await db.executescript(SQLITE_SCHEMA)
    await db.commit()

    if SEED_CATALOGUE:
        await seed_catalogue(db)


async def close_db() -> None:
    global _db
    if _db is not None:
        await _db.close()
        _db = None


async def seed_catalogue(db: DatabaseAdapter) -> int:
    """Write the starter catalogue when the table is empty. Returns rows written."""
    row = await db.fetch_one("SELECT COUNT(*) AS n FROM catalogue_entries")
    if row and row["n"]:
        return 0

    rows = seed_entries()
    now = datetime.now(UTC).isoformat()
    await db.executemany(
        UPSERT_ENTRY,
        [(kind, key, json.dumps(payload, ensure_ascii=False), now) for kind, key, payload in rows],
    )
    await db.commit()
    logger.info("Seeded %d catalogue entries", len(rows))
    return len(rows)


async def load_catalogue_entries(db: DatabaseAdapter) -> dict[str, list[dict]]:
    rows = await db.fetch_all("SELECT kind, key, payload FROM catalogue_entries ORDER BY kind, rowid")
    entries: dict[str, list[dict]] = {}
    for row in rows:
        try:
            payload = json.loads(row["payload"])
        except json.JSONDecodeError:
            logger.warning("Failed to parse catalogue entry %s/%s", row["kind"], row["key"])
            continue
        if not isinstance(payload, dict):
            logger.warning("Catalogue entry %s/%s is not an object", row["kind"], row["key"])
            continue
        entries.setdefault(row["kind"], []).append(payload)
    return entries
