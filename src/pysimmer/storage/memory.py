"""In-memory snapshot store.

Design Pattern: Adapter Pattern
InMemorySnapshotStore adapts a plain dictionary to the SnapshotStore interface.

Instance is immediately usable after __init__. Values are deep-copied
through JSON on the way in and out so callers cannot mutate stored state,
and non-serializable metadata fails here the same way it would on disk.
"""

from __future__ import annotations

import json

from pysimmer.storage.base import SnapshotRecord, SnapshotStore, StorageError


class InMemorySnapshotStore(SnapshotStore):
    """In-memory store for tests and the default module configuration.

    Can be substituted for SqliteSnapshotStore without changing client code.

    Usage:
        store = InMemorySnapshotStore()
        await store.save("timers", [])
    """

    def __init__(self):
        # {key: JSON text}
        self._values: dict[str, str] = {}
        self.save_count = 0

    def __repr__(self) -> str:
        return "InMemorySnapshotStore"

    async def load(self, key: str) -> list[SnapshotRecord] | None:
        raw = self._values.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def save(self, key: str, snapshots: list[SnapshotRecord]) -> None:
        try:
            self._values[key] = json.dumps(snapshots)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Snapshot is not serializable: {e}") from e
        self.save_count += 1

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> list[str]:
        """Return the keys currently stored."""
        return list(self._values)
