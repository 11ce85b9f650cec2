"""
Key-value settings store.

- SQLiteSettingsStore: async SQLite-backed store using aiosqlite
- InMemorySettingsStore: dict-based store for testing and ephemeral runs

Only small string values are kept here (e.g. the last package version that
owned the asset cache).
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from blockassets.cache.base import SettingsStore
from blockassets.exceptions import StorageIOError
from blockassets.logging import get_logger

logger = get_logger(__name__)


class SQLiteSettingsStore(SettingsStore):
    """Settings persisted in a single-table SQLite database."""

    def __init__(self, db_path: str | Path) -> None:
        """Initialize the settings store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Open the database and create the schema. Safe to call twice."""
        if self._db:
            return
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            db = await aiosqlite.connect(self.db_path)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            await db.commit()
        except (OSError, aiosqlite.Error) as e:
            raise StorageIOError(
                "Cannot open settings store",
                context={"db_path": str(self.db_path), "error": str(e)},
            ) from e
        self._db = db
        logger.debug("Settings store initialized", db_path=str(self.db_path))

    async def close(self) -> None:
        """Close the database connection."""
        if self._db:
            await self._db.close()
            self._db = None

    def _conn(self) -> aiosqlite.Connection:
        if not self._db:
            raise StorageIOError("SQLiteSettingsStore not initialized. Call init() first.")
        return self._db

    async def get_string(self, key: str) -> str | None:
        try:
            async with self._conn().execute(
                "SELECT value FROM settings WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageIOError(
                "Cannot read setting", context={"key": key, "error": str(e)}
            ) from e
        return row[0] if row else None

    async def set_string(self, key: str, value: str) -> None:
        db = self._conn()
        try:
            await db.execute(
                """
                INSERT INTO settings (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )
            await db.commit()
        except aiosqlite.Error as e:
            raise StorageIOError(
                "Cannot write setting", context={"key": key, "error": str(e)}
            ) from e


class InMemorySettingsStore(SettingsStore):
    """Dict-backed settings; contents are lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    async def get_string(self, key: str) -> str | None:
        return self._values.get(key)

    async def set_string(self, key: str, value: str) -> None:
        self._values[key] = value
