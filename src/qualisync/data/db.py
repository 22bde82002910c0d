"""Async SQLite connection manager using aiosqlite."""

from __future__ import annotations

import logging
from pathlib import Path
from types import TracebackType
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS collectors (
    collector_id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    kind TEXT NOT NULL,
    last_executed INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    collector_id TEXT NOT NULL,
    instance_url TEXT NOT NULL,
    project_key TEXT NOT NULL,
    project_id TEXT DEFAULT '',
    project_name TEXT DEFAULT '',
    nice_name TEXT DEFAULT '',
    description TEXT DEFAULT '',
    enabled INTEGER DEFAULT 0,
    pushed INTEGER DEFAULT 0,
    last_updated INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS quality_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    collector_item_id TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    name TEXT,
    url TEXT,
    version TEXT,
    metrics_json TEXT NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS config_changes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    collector_id TEXT NOT NULL,
    user_name TEXT,
    user_id TEXT NOT NULL DEFAULT '',
    operation TEXT NOT NULL CHECK (operation IN ('Created', 'Deleted', 'Changed')),
    timestamp INTEGER NOT NULL,
    change_json TEXT NOT NULL DEFAULT '{}'
);

CREATE TABLE IF NOT EXISTS components (
    component_id TEXT PRIMARY KEY,
    name TEXT DEFAULT ''
);

CREATE TABLE IF NOT EXISTS component_items (
    component_id TEXT NOT NULL REFERENCES components(component_id) ON DELETE CASCADE,
    kind TEXT NOT NULL,
    position INTEGER NOT NULL,
    collector_item_id TEXT NOT NULL,
    collector_id TEXT NOT NULL,
    PRIMARY KEY (component_id, kind, position)
);

CREATE INDEX IF NOT EXISTS idx_projects_identity
    ON projects(collector_id, instance_url, project_key);
CREATE INDEX IF NOT EXISTS idx_projects_enabled ON projects(collector_id, instance_url, enabled);
CREATE INDEX IF NOT EXISTS idx_snapshots_item
    ON quality_snapshots(collector_item_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_config_changes_key
    ON config_changes(collector_id, user_id, operation, timestamp);
CREATE INDEX IF NOT EXISTS idx_component_items_item
    ON component_items(kind, collector_item_id);
"""


class Database:
    """Async SQLite connection manager using aiosqlite."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def connect(self) -> Database:
        """Connect to SQLite and ensure schema."""
        if str(self._db_path) != ":memory:":
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self._db_path))
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA synchronous=NORMAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._ensure_schema()
        await self._conn.commit()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the SQLite connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            msg = "Database not connected. Use 'async with Database(path) as db:'"
            raise RuntimeError(msg)
        return self._conn

    async def execute(self, sql: str, params: tuple[Any, ...] = ()) -> aiosqlite.Cursor:
        """Execute a SQL statement."""
        return await self.conn.execute(sql, params)

    async def execute_many(self, sql: str, params_seq: list[tuple[Any, ...]]) -> None:
        """Execute a SQL statement with many parameter sets."""
        await self.conn.executemany(sql, params_seq)

    async def fetch_all(self, sql: str, params: tuple[Any, ...] = ()) -> list[aiosqlite.Row]:
        """Fetch all rows from a query."""
        cursor = await self.conn.execute(sql, params)
        return await cursor.fetchall()  # type: ignore[return-value]

    async def fetch_one(self, sql: str, params: tuple[Any, ...] = ()) -> aiosqlite.Row | None:
        """Fetch a single row from a query."""
        cursor = await self.conn.execute(sql, params)
        return await cursor.fetchone()  # type: ignore[return-value]

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self.conn.commit()

    async def _ensure_schema(self) -> None:
        """Rebuild schema when version changes; otherwise ensure all objects exist."""
        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS app_meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        row = await self.fetch_one("SELECT value FROM app_meta WHERE key = 'schema_version'")
        current_version = int(row["value"]) if row and str(row["value"]).isdigit() else 0
        if current_version == SCHEMA_VERSION:
            await self.conn.executescript(SCHEMA_SQL)
            return

        logger.info("Rebuilding DB schema from version %s to %s", current_version, SCHEMA_VERSION)
        await self.conn.execute("PRAGMA foreign_keys=OFF")
        await self.conn.executescript("""
            DROP TABLE IF EXISTS component_items;
            DROP TABLE IF EXISTS components;
            DROP TABLE IF EXISTS config_changes;
            DROP TABLE IF EXISTS quality_snapshots;
            DROP TABLE IF EXISTS projects;
            DROP TABLE IF EXISTS collectors;
        """)
        await self.conn.execute("PRAGMA foreign_keys=ON")
        await self.conn.executescript(SCHEMA_SQL)
        await self.conn.execute(
            "INSERT OR REPLACE INTO app_meta (key, value) VALUES ('schema_version', ?)",
            (str(SCHEMA_VERSION),),
        )
