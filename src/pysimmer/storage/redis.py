"""Redis-based snapshot store.

Data Structures:
- pysimmer:snapshot:{key} (STRING): JSON array of timer records

Design: Adapter Pattern
Implements SnapshotStore for Redis, adapting the Redis key-value store to
the SnapshotStore interface. Useful when the UI process and the module run
on different machines but share one cache.
"""

from __future__ import annotations

import json
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from pysimmer.storage.base import SnapshotRecord, SnapshotStore, StorageError

logger = logging.getLogger(__name__)


class RedisSnapshotStore(SnapshotStore):
    """Redis snapshot store using connection pooling.

    Usage:
        store = RedisSnapshotStore("redis://localhost:6379")
        await store.connect()
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        max_connections: int = 4,
        prefix: str = "pysimmer:snapshot:",
    ):
        """Initialize Redis snapshot store.

        Args:
            redis_url: Redis connection URL
            max_connections: Maximum pool size
            prefix: Namespace prepended to every key
        """
        self._redis_url = redis_url
        self._max_connections = max_connections
        self._prefix = prefix
        self._redis: redis.Redis | None = None

    def __repr__(self) -> str:
        return f"RedisSnapshotStore({self._redis_url})"

    async def connect(self) -> None:
        """Establish Redis connection pool."""
        if self._redis is not None:
            return
        self._redis = redis.from_url(
            self._redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=self._max_connections,
        )
        logger.info(f"Snapshot store connected: {self!r}")

    async def close(self) -> None:
        """Close Redis connection pool."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    def _check_connected(self) -> redis.Redis:
        """Ensure connection established.

        Raises immediately if not connected.
        """
        if self._redis is None:
            raise StorageError("Not connected. Call connect() first.")
        return self._redis

    def _key(self, key: str) -> str:
        """Build namespaced Redis key."""
        return f"{self._prefix}{key}"

    async def load(self, key: str) -> list[SnapshotRecord] | None:
        client = self._check_connected()
        try:
            raw = await client.get(self._key(key))
        except RedisError as e:
            raise StorageError(f"Failed to load {key!r}: {e}") from e

        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Stored value for {key!r} is not valid JSON: {e}") from e
        if not isinstance(value, list):
            raise StorageError(f"Stored value for {key!r} is not an array")
        return value

    async def save(self, key: str, snapshots: list[SnapshotRecord]) -> None:
        client = self._check_connected()
        try:
            value = json.dumps(snapshots)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Snapshot is not serializable: {e}") from e
        try:
            await client.set(self._key(key), value)
        except RedisError as e:
            raise StorageError(f"Failed to save {key!r}: {e}") from e

    async def delete(self, key: str) -> None:
        client = self._check_connected()
        try:
            await client.delete(self._key(key))
        except RedisError as e:
            raise StorageError(f"Failed to delete {key!r}: {e}") from e
