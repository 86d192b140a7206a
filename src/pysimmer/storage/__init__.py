"""Storage backends for timer snapshot persistence.

Provides multiple storage implementations behind a common interface:
    - SnapshotStore: Abstract interface
    - SqliteSnapshotStore: SQLite-backed storage
    - RedisSnapshotStore: Redis-backed shared storage
    - InMemorySnapshotStore: In-memory storage for testing

Design: Adapter Pattern + Dependency Inversion
    All storage implementations adapt to the SnapshotStore interface.
    The registry depends on the abstraction, not on concrete backends.
"""

from pysimmer.storage.base import SnapshotRecord, SnapshotStore, StorageError
from pysimmer.storage.memory import InMemorySnapshotStore

# Lazy imports so aiosqlite / redis are only loaded when a backend is used


def __getattr__(name: str):
    """Lazy import durable storage implementations."""
    if name == "SqliteSnapshotStore":
        from pysimmer.storage.sqlite import SqliteSnapshotStore

        return SqliteSnapshotStore
    elif name == "RedisSnapshotStore":
        from pysimmer.storage.redis import RedisSnapshotStore

        return RedisSnapshotStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "SnapshotRecord",
    "SnapshotStore",
    "StorageError",
    "InMemorySnapshotStore",
    "SqliteSnapshotStore",
    "RedisSnapshotStore",
]
