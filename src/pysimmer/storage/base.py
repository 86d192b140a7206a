"""
SnapshotStore - Abstract interface for timer persistence backends.

Design Pattern: Adapter Pattern
SnapshotStore defines the target interface that all storage adapters implement.
Different storage backends (SQLite, Redis, Memory) adapt to this common interface.

The registry persists the full set of timers as one JSON array under a
single key after every mutation. Stores therefore only need whole-value
load/save/delete; there is no partial update.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

SnapshotRecord = dict[str, Any]
"""One persisted timer (see ``TimerSnapshot.to_dict``)."""


class StorageError(Exception):
    """
    Snapshot store operation failed.

    Wraps backend specific errors (sqlite, redis, JSON decoding) so callers
    handle a single exception type.
    """

    pass


class SnapshotStore(ABC):
    """
    Abstract key-value store for timer snapshots.

    After __init__, durable backends are not yet usable. Call connect() first.
    connect() and close() are idempotent.

    Usage:
        store = SqliteSnapshotStore("timers.db")
        await store.connect()
        try:
            await store.save("recipe-viewer-timers", [snapshot.to_dict()])
        finally:
            await store.close()
    """

    async def connect(self) -> None:
        """Open backend resources. Default: nothing to open."""
        return None

    async def close(self) -> None:
        """Release backend resources. Default: nothing to release."""
        return None

    @abstractmethod
    async def load(self, key: str) -> list[SnapshotRecord] | None:
        """
        Load the snapshot array stored under key.

        Returns:
            The stored records, or None if the key is absent

        Raises:
            StorageError: If the backend fails or the stored value is not a JSON array
        """
        pass

    @abstractmethod
    async def save(self, key: str, snapshots: list[SnapshotRecord]) -> None:
        """
        Replace the value stored under key with the given records.

        An empty list is a valid value (an empty registry).

        Raises:
            StorageError: If the backend fails
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """
        Remove key. Deleting an absent key is not an error.

        Raises:
            StorageError: If the backend fails
        """
        pass

    async def __aenter__(self) -> SnapshotStore:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
