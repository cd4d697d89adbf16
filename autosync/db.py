"""SettingsStore: aiosqlite key-value store for small JSON records.

Only the engine config lives here. Task records are deliberately transient
and never written to this database.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import aiosqlite

from autosync.config import settings

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""


class SettingsStore:
    """Persists flat JSON records under string keys in SQLite.

    Pass an explicit *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path
        self._initialised = False

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path))
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.commit()
            self._initialised = True
        return db

    async def get(self, key: str) -> dict[str, Any] | None:
        """Fetch the record stored under *key*, or None if absent."""
        db = await self._connect()
        try:
            cursor = await db.execute("SELECT value FROM settings WHERE key = ?", (key,))
            row = await cursor.fetchone()
        finally:
            await db.close()
        if row is None:
            return None
        value = json.loads(row[0])
        if not isinstance(value, dict):
            logger.warning("Settings key %s does not hold an object; ignoring", key)
            return None
        return value

    async def set(self, key: str, value: dict[str, Any]) -> None:
        """Insert or replace the record stored under *key*."""
        db = await self._connect()
        try:
            await db.execute(
                """
                INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, json.dumps(value), datetime.now(UTC).isoformat()),
            )
            await db.commit()
            logger.debug("Saved settings key %s", key)
        finally:
            await db.close()

    async def delete(self, key: str) -> bool:
        """Remove *key*. Returns True if a row was deleted."""
        db = await self._connect()
        try:
            cursor = await db.execute("DELETE FROM settings WHERE key = ?", (key,))
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()
