"""
Timer registry: the service that owns every timer.

The registry is the only component that creates, mutates or drops Timer
entities. All of its operations are exposed as bus request handlers and
answered on response topics; the same operations are also plain methods
for in-process callers and tests.

Persistence: after every mutation the full timer set is written to the
snapshot store through a coalescing writer. Failures are logged and the
in-memory state stays authoritative.

Lifecycle:
    registry = TimerRegistry(bus, store)
    await registry.init()     # load, subscribe, publish timer:initialized
    ...
    await registry.dispose()  # stop ticks, unsubscribe, flush
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

from pysimmer.bus import (
    AddMetadataRequest,
    CompletionNotice,
    CountResponse,
    CreatedResponse,
    CreateTimerRequest,
    EmptyRequest,
    MessageBus,
    MetadataAdded,
    NameRequest,
    OperationResponse,
    RegistryInitialized,
    RenameRequest,
    StepHighlighted,
    StepRequest,
    TimerEvent,
    TimerIdRequest,
    TimerRemoved,
    TimerRenamed,
    TimerResponse,
    TimersCleared,
    TimersLoaded,
    Topics,
    Unsubscribe,
)
from pysimmer.config import (
    AUTO_START_DELAY,
    DEFAULT_DURATION,
    DEFAULT_TIMER_NAME,
    TICK_INTERVAL,
    TIMERS_STORAGE_KEY,
)
from pysimmer.core.errors import TimerError
from pysimmer.core.resolver import resolve_timer_name
from pysimmer.core.signature import timer_signature
from pysimmer.core.timer import Timer
from pysimmer.core.writer import SnapshotWriter
from pysimmer.models import TimerSnapshot, TimerStatus
from pysimmer.storage import InMemorySnapshotStore, SnapshotRecord, SnapshotStore, StorageError

logger = logging.getLogger(__name__)


class TimerRegistry:
    """Owner of the id -> Timer map.

    Args:
        bus: Message bus shared with the render queue and interpreter
        store: Snapshot store, connected by the caller (in-memory by default)
        storage_key: Key holding the persisted timer array
        tick_interval: Seconds between ticks of running timers
        auto_start_delay: Delay before an auto-started timer starts
    """

    def __init__(
        self,
        bus: MessageBus,
        store: SnapshotStore | None = None,
        *,
        storage_key: str = TIMERS_STORAGE_KEY,
        tick_interval: float = TICK_INTERVAL,
        auto_start_delay: float = AUTO_START_DELAY,
    ):
        self._bus = bus
        self._store = store if store is not None else InMemorySnapshotStore()
        self._storage_key = storage_key
        self._tick_interval = tick_interval
        self._auto_start_delay = auto_start_delay

        self._timers: dict[str, Timer] = {}
        self._signatures: dict[str, set[int]] = {}
        self._auto_starts: dict[str, asyncio.TimerHandle] = {}
        self._unsubscribers: list[Unsubscribe] = []
        self._writer = SnapshotWriter(self._store, storage_key, self.snapshot_records)
        self._initialized = False

    def __repr__(self) -> str:
        return f"TimerRegistry(timers={len(self._timers)}, store={self._store!r})"

    def __len__(self) -> int:
        return len(self._timers)

    def __contains__(self, timer_id: object) -> bool:
        return timer_id in self._timers

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @property
    def writer(self) -> SnapshotWriter:
        return self._writer

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def init(self) -> None:
        """Load persisted timers, subscribe request handlers, announce readiness."""
        if self._initialized:
            return

        await self._load()
        self._subscribe()
        self._initialized = True

        logger.info(f"Timer registry initialized with {len(self._timers)} timers")
        self._bus.publish(Topics.INITIALIZED, RegistryInitialized(count=len(self._timers)))

    async def dispose(self) -> None:
        """Stop every tick, drop subscriptions and flush the last snapshot."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

        for handle in self._auto_starts.values():
            handle.cancel()
        self._auto_starts.clear()

        for timer in self._timers.values():
            timer.cancel()

        self.persist()
        await self._writer.flush()
        self._timers.clear()
        self._initialized = False
        logger.info("Timer registry disposed")

    async def flush(self) -> None:
        """Wait for pending persistence writes."""
        await self._writer.flush()

    async def _load(self) -> None:
        try:
            records = await self._store.load(self._storage_key)
        except StorageError as e:
            logger.error(f"Failed to load timers from {self._store!r}: {e}")
            return

        for record in records or []:
            try:
                snapshot = TimerSnapshot.from_dict(record)
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed stored timer {record!r}: {e}")
                continue
            self._timers[snapshot.id] = Timer.from_snapshot(
                snapshot, bus=self._bus, tick_interval=self._tick_interval
            )

        logger.info(f"Loaded {len(self._timers)} timers from storage")

    def _subscribe(self) -> None:
        handlers: dict[str, Callable[[Any], None]] = {
            Topics.REQUEST_CREATE: self._handle_create,
            Topics.REQUEST_RENAME: self._handle_rename,
            Topics.REQUEST_ADD_METADATA: self._handle_add_metadata,
            Topics.REQUEST_GET: self._handle_get,
            Topics.REQUEST_GET_ALL: self._handle_get_all,
            Topics.REQUEST_CLEAR: self._handle_clear,
            Topics.REQUEST_HIGHLIGHT_STEP: self._handle_highlight_step,
            Topics.REQUEST_STEPS_CLEAR: self._handle_steps_clear,
            Topics.TICK: self._handle_tick,
            Topics.COMPLETED: self._handle_completed,
        }
        operations = {
            "start": self.start,
            "pause": self.pause,
            "reset": self.reset,
            "remove": self.remove,
        }
        for op, operation in operations.items():
            handlers[Topics.request(op)] = self._control_handler(op, operation)
            handlers[Topics.by_name(op)] = self._by_name_handler(op, operation)

        batches = {"start": self.start_all, "pause": self.pause_all, "reset": self.reset_all}
        for op, batch in batches.items():
            handlers[Topics.all(op)] = self._batch_handler(op, batch)

        for topic, handler in handlers.items():
            self._unsubscribers.append(self._bus.subscribe(topic, handler))

    # ========================================================================
    # Bus handlers
    # ========================================================================

    def _handle_create(self, request: CreateTimerRequest) -> None:
        timer_id = self.create(
            name=request.name,
            duration=request.duration,
            metadata=request.metadata,
            auto_start=request.auto_start,
        )
        self._bus.publish(
            Topics.CREATED_RESPONSE, CreatedResponse(id=timer_id, request_id=request.request_id)
        )

    def _control_handler(
        self, op: str, operation: Callable[[str], bool]
    ) -> Callable[[TimerIdRequest], None]:
        def handle(request: TimerIdRequest) -> None:
            success = operation(request.id)
            self._bus.publish(Topics.response(op), OperationResponse(id=request.id, success=success))

        handle.__qualname__ = f"TimerRegistry.handle_{op}"
        return handle

    def _by_name_handler(
        self, op: str, operation: Callable[[str], bool]
    ) -> Callable[[NameRequest], None]:
        def handle(request: NameRequest) -> None:
            timer_id = self.find_by_name(request.name)
            if timer_id is None:
                logger.info(f"No timer found with name similar to {request.name!r}")
                return
            logger.debug(f"Resolved {request.name!r} to {timer_id} for {op}")
            success = operation(timer_id)
            self._bus.publish(Topics.response(op), OperationResponse(id=timer_id, success=success))

        handle.__qualname__ = f"TimerRegistry.handle_{op}_by_name"
        return handle

    def _batch_handler(self, op: str, batch: Callable[[], int]) -> Callable[[EmptyRequest], None]:
        def handle(request: EmptyRequest) -> None:
            count = batch()
            self._bus.publish(Topics.all_response(op), CountResponse(count=count))

        handle.__qualname__ = f"TimerRegistry.handle_{op}_all"
        return handle

    def _handle_rename(self, request: RenameRequest) -> None:
        success = self.rename(request.id, request.name)
        self._bus.publish(Topics.RENAME_RESPONSE, OperationResponse(id=request.id, success=success))

    def _handle_add_metadata(self, request: AddMetadataRequest) -> None:
        success = self.add_metadata(request.id, request.metadata)
        self._bus.publish(
            Topics.ADD_METADATA_RESPONSE, OperationResponse(id=request.id, success=success)
        )

    def _handle_get(self, request: TimerIdRequest) -> None:
        timer = self.get(request.id)
        snapshot = timer.snapshot() if timer is not None else None
        self._bus.publish(Topics.GET_RESPONSE, TimerResponse(id=request.id, timer=snapshot))

    def _handle_get_all(self, request: EmptyRequest) -> None:
        self._bus.publish(Topics.LOADED, TimersLoaded(timers=tuple(self.snapshots())))

    def _handle_clear(self, request: EmptyRequest) -> None:
        self.clear_all()

    def _handle_highlight_step(self, request: StepRequest) -> None:
        self.highlight_step(request.step_id)

    def _handle_steps_clear(self, request: EmptyRequest) -> None:
        self.clear_step_signatures()

    def _handle_tick(self, event: TimerEvent) -> None:
        if event.id in self._timers:
            self.persist()

    def _handle_completed(self, event: TimerEvent) -> None:
        timer = self._timers.get(event.id)
        if timer is None:
            return
        self.persist()
        self._bus.publish(
            Topics.NOTIFY_COMPLETE, CompletionNotice(id=timer.id, name=timer.name, play_sound=True)
        )

    # ========================================================================
    # Operations
    # ========================================================================

    def create(
        self,
        name: str | None = None,
        duration: int | None = None,
        metadata: Mapping[str, Any] | None = None,
        auto_start: bool = False,
    ) -> str | None:
        """
        Create a timer.

        Returns:
            The new id, or None when the request duplicates an existing
            step timer or is invalid (the reason is logged)
        """
        metadata = dict(metadata or {})
        duration = duration or DEFAULT_DURATION

        try:
            if duration < 0:
                raise TimerError(f"Timer duration must be positive, got {duration}")
            signature = timer_signature(metadata, duration)
            if signature is not None:
                seen = self._signatures.setdefault(signature.step_key, set())
                if signature.digest in seen:
                    logger.info(
                        f"Timer {signature.canonical} already created for {signature.step_key}, skipping"
                    )
                    return None
            timer = Timer(
                name or DEFAULT_TIMER_NAME,
                duration,
                metadata,
                bus=self._bus,
                tick_interval=self._tick_interval,
            )
        except TimerError as e:
            logger.error(f"Rejected timer creation ({name!r}, {duration}): {e}")
            return None

        if signature is not None:
            seen.add(signature.digest)
        self._timers[timer.id] = timer
        logger.info(f"Created timer: {timer.id}, name: {timer.name}, duration: {timer.duration}s")

        self.persist()
        self._bus.publish(Topics.CREATED, TimerEvent(timer=timer.snapshot()))

        if auto_start:
            self._schedule_auto_start(timer.id)
        return timer.id

    def start(self, timer_id: str) -> bool:
        timer = self._lookup(timer_id)
        if timer is None:
            return False
        self._cancel_auto_start(timer_id)
        if timer.start():
            logger.info(f"Started timer: {timer.name} ({timer_id})")
        self.persist()
        self._bus.publish(Topics.STARTED, TimerEvent(timer=timer.snapshot()))
        return True

    def pause(self, timer_id: str) -> bool:
        timer = self._lookup(timer_id)
        if timer is None:
            return False
        self._cancel_auto_start(timer_id)
        timer.pause()
        self.persist()
        self._bus.publish(Topics.PAUSED, TimerEvent(timer=timer.snapshot()))
        return True

    def reset(self, timer_id: str) -> bool:
        timer = self._lookup(timer_id)
        if timer is None:
            return False
        self._cancel_auto_start(timer_id)
        timer.reset()
        self.persist()
        self._bus.publish(Topics.RESET, TimerEvent(timer=timer.snapshot()))
        return True

    def remove(self, timer_id: str) -> bool:
        """Drop a timer. Its tick is cancelled before the entity is released."""
        timer = self._timers.get(timer_id)
        if timer is None:
            logger.warning(f"Timer not found: {timer_id}")
            return False
        self._drop(timer)
        self.persist()
        self._bus.publish(Topics.REMOVED, TimerRemoved(id=timer_id))
        return True

    def rename(self, timer_id: str, name: str) -> bool:
        timer = self._lookup(timer_id)
        if timer is None:
            return False
        try:
            timer.rename(name)
        except TimerError as e:
            logger.warning(f"Cannot rename {timer_id}: {e}")
            return False
        self.persist()
        self._bus.publish(Topics.RENAMED, TimerRenamed(id=timer_id, name=timer.name))
        self._bus.publish(Topics.UPDATED, TimerEvent(timer=timer.snapshot()))
        return True

    def add_metadata(self, timer_id: str, metadata: Mapping[str, Any]) -> bool:
        timer = self._lookup(timer_id)
        if timer is None:
            return False
        timer.add_metadata(metadata)
        self.persist()
        self._bus.publish(Topics.METADATA_ADDED, MetadataAdded(id=timer_id, metadata=metadata))
        return True

    def get(self, timer_id: str) -> Timer | None:
        """Return the live timer. Callers must not mutate it."""
        return self._timers.get(timer_id)

    def get_all(self) -> list[Timer]:
        """Return live timers in creation order. Callers must not mutate them."""
        return list(self._timers.values())

    def snapshots(self) -> list[TimerSnapshot]:
        return [timer.snapshot() for timer in self._timers.values()]

    def snapshot_records(self) -> list[SnapshotRecord]:
        """Current timers in the persisted record format."""
        return [snapshot.to_dict() for snapshot in self.snapshots()]

    def clear_all(self) -> None:
        """
        Remove every timer.

        Idempotent. The persisted snapshot becomes empty even when dropping
        an individual timer fails.
        """
        for timer in list(self._timers.values()):
            try:
                self._drop(timer)
                self._bus.publish(Topics.REMOVED, TimerRemoved(id=timer.id))
            except Exception as e:
                logger.error(f"Error removing timer {timer.id} during clear all: {e}")

        self._timers.clear()
        for handle in self._auto_starts.values():
            handle.cancel()
        self._auto_starts.clear()
        self._signatures.clear()

        self.persist()
        logger.info("Cleared all timers")
        self._bus.publish(Topics.CLEARED, TimersCleared())

    def start_all(self) -> int:
        """Start every timer that is neither ticking nor completed."""
        count = 0
        for timer in list(self._timers.values()):
            if timer.is_complete or timer.is_ticking:
                continue
            self.start(timer.id)
            count += 1
        logger.info(f"Started {count} timers")
        return count

    def pause_all(self) -> int:
        count = 0
        for timer in list(self._timers.values()):
            if timer.status == TimerStatus.RUNNING:
                self.pause(timer.id)
                count += 1
        logger.info(f"Paused {count} timers")
        return count

    def reset_all(self) -> int:
        """Reset every timer not already idle at its full duration."""
        count = 0
        for timer in list(self._timers.values()):
            if timer.status == TimerStatus.IDLE and timer.remaining == timer.duration:
                continue
            self.reset(timer.id)
            count += 1
        logger.info(f"Reset {count} timers")
        return count

    def find_by_name(self, name: str) -> str | None:
        return resolve_timer_name(name, self._timers.values())

    def start_by_name(self, name: str) -> str | None:
        """Start the timer resolved from name. Returns its id, None if unresolved."""
        return self._by_name(name, self.start)

    def pause_by_name(self, name: str) -> str | None:
        return self._by_name(name, self.pause)

    def reset_by_name(self, name: str) -> str | None:
        return self._by_name(name, self.reset)

    def remove_by_name(self, name: str) -> str | None:
        return self._by_name(name, self.remove)

    def highlight_step(self, step_id: Any) -> list[TimerSnapshot]:
        """Publish the timers created from step_id."""
        wanted = str(step_id)
        timers = [
            timer.snapshot()
            for timer in self._timers.values()
            if timer.metadata.get("stepId") is not None and str(timer.metadata["stepId"]) == wanted
        ]
        self._bus.publish(Topics.HIGHLIGHT_STEP, StepHighlighted(step_id=step_id, timers=tuple(timers)))
        return timers

    def clear_step_signatures(self) -> None:
        """Forget duplicate-detection state so steps can create timers again."""
        self._signatures.clear()

    def persist(self) -> None:
        """Schedule a write of the full timer set."""
        self._writer.persist()

    # ========================================================================
    # Internals
    # ========================================================================

    def _lookup(self, timer_id: str) -> Timer | None:
        timer = self._timers.get(timer_id)
        if timer is None:
            logger.warning(f"Timer not found: {timer_id}")
        return timer

    def _by_name(self, name: str, operation: Callable[[str], bool]) -> str | None:
        timer_id = self.find_by_name(name)
        if timer_id is None:
            logger.info(f"No timer found with name similar to {name!r}")
            return None
        operation(timer_id)
        return timer_id

    def _drop(self, timer: Timer) -> None:
        self._cancel_auto_start(timer.id)
        timer.cancel()
        self._timers.pop(timer.id, None)

    def _schedule_auto_start(self, timer_id: str) -> None:
        loop = asyncio.get_running_loop()
        self._auto_starts[timer_id] = loop.call_later(
            self._auto_start_delay, self._auto_start, timer_id
        )

    def _auto_start(self, timer_id: str) -> None:
        self._auto_starts.pop(timer_id, None)
        if timer_id in self._timers:
            logger.debug(f"Auto-starting timer: {timer_id}")
            self.start(timer_id)

    def _cancel_auto_start(self, timer_id: str) -> None:
        handle = self._auto_starts.pop(timer_id, None)
        if handle is not None:
            handle.cancel()
