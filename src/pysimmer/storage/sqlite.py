"""SQLite-backed snapshot store.

Design Pattern: Adapter Pattern
SqliteSnapshotStore adapts an SQLite database to the SnapshotStore interface.

Implementation details:
- aiosqlite for async operations
- WAL mode for concurrent reads
- One row per key, JSON text value, millisecond update timestamp
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

from pysimmer.storage.base import SnapshotRecord, SnapshotStore, StorageError

logger = logging.getLogger(__name__)


class SqliteSnapshotStore(SnapshotStore):
    """SQLite-backed durable snapshot storage.

    After __init__, the instance is not yet usable. Call connect() first.

    Usage:
        store = SqliteSnapshotStore("pysimmer.db")
        await store.connect()
        try:
            await store.save("recipe-viewer-timers", records)
        finally:
            await store.close()
    """

    def __init__(self, db_path: str):
        """Initialize store (connection not opened yet).

        Args:
            db_path: Path to SQLite database file, or ":memory:"
        """
        self.db_path = db_path
        self._connection: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()  # Serialize access to shared connection

    @classmethod
    async def in_memory(cls) -> SqliteSnapshotStore:
        """
        Create a connected in-memory SQLite store for testing.

        Example:
            store = await SqliteSnapshotStore.in_memory()
        """
        instance = cls(":memory:")
        await instance.connect()
        return instance

    def __repr__(self) -> str:
        if self.db_path == ":memory:":
            return "SqliteSnapshotStore(in-memory)"
        return f"SqliteSnapshotStore({self.db_path})"

    async def connect(self) -> None:
        """Open database connection and initialize schema.

        Fixed initialization sequence:
        1. Open connection
        2. Enable WAL mode
        3. Create table
        """
        if self._connection is not None:
            return

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._connection = await aiosqlite.connect(
                self.db_path,
                timeout=5.0,
                isolation_level=None,  # Autocommit mode
            )

            # In-memory databases report "memory" and don't support WAL
            cursor = await self._connection.execute("PRAGMA journal_mode=WAL")
            result = await cursor.fetchone()
            await cursor.close()
            if result:
                mode = result[0].upper()
                if mode not in ("WAL", "MEMORY"):
                    raise StorageError(f"Failed to enable WAL mode, got: {result[0]}")

            await self._connection.execute("PRAGMA synchronous=NORMAL")
            await self._connection.execute("PRAGMA busy_timeout=5000")

            await self._connection.execute("""
                CREATE TABLE IF NOT EXISTS snapshots (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at INTEGER NOT NULL
                )
            """)
            await self._connection.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to open {self.db_path}: {e}") from e

        logger.info(f"Snapshot store connected: {self!r}")

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    def _check_connected(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise StorageError("Not connected. Call connect() first.")
        return self._connection

    async def load(self, key: str) -> list[SnapshotRecord] | None:
        connection = self._check_connected()
        async with self._lock:
            try:
                cursor = await connection.execute(
                    "SELECT value FROM snapshots WHERE key = ?", (key,)
                )
                row = await cursor.fetchone()
                await cursor.close()
            except aiosqlite.Error as e:
                raise StorageError(f"Failed to load {key!r}: {e}") from e

        if row is None:
            return None
        try:
            value = json.loads(row[0])
        except json.JSONDecodeError as e:
            raise StorageError(f"Stored value for {key!r} is not valid JSON: {e}") from e
        if not isinstance(value, list):
            raise StorageError(f"Stored value for {key!r} is not an array")
        return value

    async def save(self, key: str, snapshots: list[SnapshotRecord]) -> None:
        connection = self._check_connected()
        try:
            value = json.dumps(snapshots)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Snapshot is not serializable: {e}") from e

        updated_at = int(datetime.now(UTC).timestamp() * 1000)
        async with self._lock:
            try:
                await connection.execute(
                    """
                    INSERT INTO snapshots (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, value, updated_at),
                )
                await connection.commit()
            except aiosqlite.Error as e:
                raise StorageError(f"Failed to save {key!r}: {e}") from e

    async def delete(self, key: str) -> None:
        connection = self._check_connected()
        async with self._lock:
            try:
                await connection.execute("DELETE FROM snapshots WHERE key = ?", (key,))
                await connection.commit()
            except aiosqlite.Error as e:
                raise StorageError(f"Failed to delete {key!r}: {e}") from e
