"""
Single-flight snapshot writer.

Every registry mutation asks for the full timer set to be persisted.
Writes are coalesced: ``persist()`` only marks the state dirty and makes
sure one flush task is running. The flush task keeps saving the latest
snapshot until no new mutation arrived during the previous save, so at
most one save is in flight and the last one always reflects the final
in-memory state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from pysimmer.storage import SnapshotRecord, SnapshotStore

logger = logging.getLogger(__name__)


class SnapshotWriter:
    """Coalescing writer from a snapshot source to a SnapshotStore.

    Args:
        store: Destination store (already connected)
        key: Key holding the snapshot array
        source: Callable returning the current records at save time
    """

    def __init__(
        self,
        store: SnapshotStore,
        key: str,
        source: Callable[[], list[SnapshotRecord]],
    ):
        self._store = store
        self._key = key
        self._source = source
        self._dirty = False
        self._task: asyncio.Task | None = None
        self.writes = 0
        self.failures = 0
        self.last_error: Exception | None = None

    @property
    def pending(self) -> bool:
        """True while a save is scheduled or in flight."""
        return self._dirty or (self._task is not None and not self._task.done())

    def persist(self) -> None:
        """Request a save of the current state."""
        self._dirty = True
        if self._task is not None and not self._task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running loop, snapshot of {self._key!r} deferred")
            return
        self._task = loop.create_task(self._flush_loop(), name=f"persist-{self._key}")

    async def flush(self) -> None:
        """Wait until every requested save has been attempted."""
        if self._dirty and (self._task is None or self._task.done()):
            await self._flush_loop()
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    async def _flush_loop(self) -> None:
        while self._dirty:
            self._dirty = False
            records = self._source()
            try:
                await self._store.save(self._key, records)
            except Exception as e:
                # In-memory state stays authoritative; the next mutation retries
                self.failures += 1
                self.last_error = e
                logger.error(f"Failed to persist {len(records)} timers to {self._store!r}: {e}")
            else:
                self.writes += 1
                logger.debug(f"Persisted {len(records)} timers under {self._key!r}")
