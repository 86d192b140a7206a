"""
Timer module: the composition root.

Wires the bus, snapshot store, registry, render queue and command
interpreter together and owns their lifecycle. Client code talks to the
registry only through bus requests; the helpers here wrap the common
request/response exchanges.

Usage:
    module = TimerModule().with_view(TextView())
    await module.init()
    timer_id = await module.create_timer(name="Pasta", duration=600, auto_start=True)
    module.process_command("pause the pasta timer")
    await module.dispose()
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from uuid_extensions import uuid7

from pysimmer.bus import (
    AddMetadataRequest,
    CreatedResponse,
    CreateTimerRequest,
    MessageBus,
    OperationResponse,
    RenameRequest,
    StepRequest,
    TimerIdRequest,
    Topics,
    Unsubscribe,
)
from pysimmer.commands import (
    CommandInterpreter,
    create_step_key,
    create_step_timer_key,
    find_timers_in_step,
    format_duration,
)
from pysimmer.config import AUTO_START_DELAY, CREATE_TIMEOUT, TICK_INTERVAL
from pysimmer.core import TimerRegistry
from pysimmer.storage import InMemorySnapshotStore, SnapshotStore
from pysimmer.ui import Notifier, RenderQueue, TimerView

logger = logging.getLogger(__name__)

PHASE_NAMES = {"preparation": "Preparation"}


@dataclass(frozen=True)
class StepContext:
    """Where a workflow step sits in the recipe.

    Attributes:
        step_index: Global index of the step (used as ``stepId``)
        phase: "preparation" or "cooking"
        phase_step_number: 1-based position within the phase
    """

    step_index: int
    phase: str = "cooking"
    phase_step_number: int = 1

    @classmethod
    def from_mapping(cls, context: Mapping[str, Any]) -> StepContext:
        return cls(
            step_index=context["stepIndex"],
            phase=context.get("phase", "cooking"),
            phase_step_number=context.get("phaseStepNumber", 1),
        )

    @property
    def step_key(self) -> str:
        return create_step_key(self.phase, self.step_index)

    @property
    def label(self) -> str:
        """Display label, e.g. "Preparation Step 2"."""
        return f"{PHASE_NAMES.get(self.phase, 'Cooking')} Step {self.phase_step_number}"


class TimerModule:
    """Composition root for the timer subsystem.

    Components are built on ``init()`` from the configured pieces, so the
    builder methods must be called before it.

    Example:
        module = (
            TimerModule()
            .with_storage(SqliteSnapshotStore("timers.db"))
            .with_tick_interval(0.5)
            .keep_existing_timers()
        )
    """

    def __init__(self, bus: MessageBus | None = None):
        self.bus = bus if bus is not None else MessageBus()
        self._store: SnapshotStore | None = None
        self._view: TimerView | None = None
        self._notifier: Notifier | None = None
        self._tick_interval = TICK_INTERVAL
        self._auto_start_delay = AUTO_START_DELAY
        self._create_timeout = CREATE_TIMEOUT
        self._keep_existing = False

        self.registry: TimerRegistry | None = None
        self.render_queue: RenderQueue | None = None
        self.interpreter: CommandInterpreter | None = None

        self._processed_steps: set[str] = set()
        self._unsubscribers: list[Unsubscribe] = []
        self._initialized = False

    def __repr__(self) -> str:
        return f"TimerModule(initialized={self._initialized}, store={self._store!r})"

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def store(self) -> SnapshotStore | None:
        return self._store

    # ========================================================================
    # Builder
    # ========================================================================

    def with_storage(self, store: SnapshotStore) -> "TimerModule":
        """Persist timers in store (builder pattern). In-memory by default.

        The module connects the store on ``init()`` and closes it on
        ``dispose()``.
        """
        self._store = store
        return self

    def with_view(self, view: TimerView) -> "TimerModule":
        self._view = view
        return self

    def with_notifier(self, notifier: Notifier) -> "TimerModule":
        self._notifier = notifier
        return self

    def with_tick_interval(self, interval: float) -> "TimerModule":
        """Set the seconds between ticks of running timers (builder pattern).

        Default is 1 second. Tests use a short interval to run countdowns
        quickly; the countdown itself still moves one unit per tick.
        """
        self._tick_interval = interval
        return self

    def with_auto_start_delay(self, delay: float) -> "TimerModule":
        self._auto_start_delay = delay
        return self

    def with_create_timeout(self, timeout: float) -> "TimerModule":
        """Bound the wait for ``timer:created:response`` (default 3 seconds)."""
        self._create_timeout = timeout
        return self

    def keep_existing_timers(self, keep: bool = True) -> "TimerModule":
        """Keep persisted timers on ``init()`` instead of clearing them."""
        self._keep_existing = keep
        return self

    @classmethod
    def from_env(cls) -> "TimerModule":
        """
        Build a module configured from environment variables.

        Variables:
            PYSIMMER_STORAGE: memory (default), sqlite or redis
            PYSIMMER_DB_PATH: SQLite file, default ``pysimmer.db``
            PYSIMMER_REDIS_URL: default ``redis://localhost:6379``
            PYSIMMER_TICK_INTERVAL: seconds between ticks, default 1.0
        """
        backend = os.getenv("PYSIMMER_STORAGE", "memory").lower()
        if backend == "sqlite":
            from pysimmer.storage import SqliteSnapshotStore

            store: SnapshotStore = SqliteSnapshotStore(os.getenv("PYSIMMER_DB_PATH", "pysimmer.db"))
        elif backend == "redis":
            from pysimmer.storage import RedisSnapshotStore

            store = RedisSnapshotStore(os.getenv("PYSIMMER_REDIS_URL", "redis://localhost:6379"))
        elif backend == "memory":
            store = InMemorySnapshotStore()
        else:
            raise ValueError(f"Unknown PYSIMMER_STORAGE backend: {backend!r}")

        module = cls().with_storage(store)
        interval = os.getenv("PYSIMMER_TICK_INTERVAL")
        if interval:
            module.with_tick_interval(float(interval))
        return module

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def init(self) -> None:
        """
        Connect the store and start every component.

        The render queue subscribes before the registry announces itself,
        so timers loaded from storage are rendered. Loaded timers are then
        cleared unless ``keep_existing_timers()`` was set.
        """
        if self._initialized:
            return

        if self._store is None:
            self._store = InMemorySnapshotStore()
        await self._store.connect()

        self.registry = TimerRegistry(
            self.bus,
            self._store,
            tick_interval=self._tick_interval,
            auto_start_delay=self._auto_start_delay,
        )
        self.render_queue = RenderQueue(self.bus, self._view, self._notifier)
        self.interpreter = CommandInterpreter(self.bus)

        self.render_queue.init()
        self.interpreter.init()
        await self.registry.init()

        if not self._keep_existing:
            self.registry.clear_all()

        self._unsubscribers.append(self.bus.subscribe(Topics.STEP_CHANGED, self._on_step_changed))
        self._initialized = True
        logger.info(f"Timer module initialized with {len(self.registry)} timers")

    async def dispose(self) -> None:
        if not self._initialized:
            return
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

        self.interpreter.dispose()
        await self.registry.dispose()
        await self.render_queue.dispose()
        await self.bus.drain()
        await self._store.close()

        self._processed_steps.clear()
        self._initialized = False
        logger.info("Timer module disposed")

    async def __aenter__(self) -> "TimerModule":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()

    # ========================================================================
    # Client helpers
    # ========================================================================

    async def create_timer(
        self,
        name: str | None = None,
        duration: int | None = None,
        metadata: Mapping[str, Any] | None = None,
        auto_start: bool = False,
    ) -> str | None:
        """
        Request a new timer and wait for the registry's answer.

        Returns:
            The new id, or None when the registry refused the timer or did
            not answer within the create timeout
        """
        request_id = uuid7().hex
        loop = asyncio.get_running_loop()
        answer: asyncio.Future[str | None] = loop.create_future()

        def on_response(response: CreatedResponse) -> None:
            if response.request_id == request_id and not answer.done():
                answer.set_result(response.id)

        unsubscribe = self.bus.subscribe(Topics.CREATED_RESPONSE, on_response)
        try:
            self.bus.publish(
                Topics.REQUEST_CREATE,
                CreateTimerRequest(
                    name=name,
                    duration=duration,
                    auto_start=auto_start,
                    metadata=dict(metadata or {}),
                    request_id=request_id,
                ),
            )
            return await asyncio.wait_for(answer, timeout=self._create_timeout)
        except TimeoutError:
            logger.warning(f"Timer creation timed out after {self._create_timeout}s: {name!r}")
            return None
        finally:
            unsubscribe()

    def start_timer(self, timer_id: str) -> bool:
        return self._request("start", TimerIdRequest(id=timer_id))

    def pause_timer(self, timer_id: str) -> bool:
        return self._request("pause", TimerIdRequest(id=timer_id))

    def reset_timer(self, timer_id: str) -> bool:
        return self._request("reset", TimerIdRequest(id=timer_id))

    def remove_timer(self, timer_id: str) -> bool:
        return self._request("remove", TimerIdRequest(id=timer_id))

    def rename_timer(self, timer_id: str, name: str) -> bool:
        return self._request("rename", RenameRequest(id=timer_id, name=name))

    def add_metadata(self, timer_id: str, metadata: Mapping[str, Any]) -> bool:
        return self._request("addMetadata", AddMetadataRequest(id=timer_id, metadata=dict(metadata)))

    def highlight_step(self, step_id: Any) -> None:
        self.bus.publish(Topics.REQUEST_HIGHLIGHT_STEP, StepRequest(step_id=step_id))

    def process_command(self, command: str) -> bool:
        if self.interpreter is None:
            logger.error("Timer module not initialized, call init() first")
            return False
        return self.interpreter.process_command(command)

    # ========================================================================
    # Workflow steps
    # ========================================================================

    async def create_timers_for_step(
        self, step: Mapping[str, Any] | None, context: StepContext | Mapping[str, Any]
    ) -> list[str]:
        """
        Create the timers a workflow step mentions.

        Each step is processed once per session: a step key seen before
        yields no timers, so revisiting a step does not duplicate them.

        Returns:
            Ids of the timers created
        """
        if not self._initialized:
            logger.error("Timer module not initialized, call init() first")
            return []
        if not step:
            logger.error("Invalid step provided to create_timers_for_step")
            return []

        if not isinstance(context, StepContext):
            context = StepContext.from_mapping(context)
        if context.step_key in self._processed_steps:
            logger.debug(f"Step {context.step_key} already processed, skipping timer detection")
            return []
        self._processed_steps.add(context.step_key)

        found = find_timers_in_step(step)
        logger.info(f"Found {len(found)} timers in step {context.step_key}")

        description = step.get("description") or step.get("mainStep")
        bullets = step.get("bullets") or []
        requests = []
        for index, hit in enumerate(found):
            source_text = description if hit.source == "main" else bullets[hit.bullet_index]
            logger.debug(f"Step timer {index}: {hit.label!r} ({format_duration(hit.duration)})")
            requests.append(
                self.create_timer(
                    name=hit.label or context.label,
                    duration=hit.duration,
                    metadata={
                        "stepId": context.step_index,
                        "stepIndex": context.step_index,
                        "stepPhase": context.phase,
                        "phaseStepNumber": context.phase_step_number,
                        "source": hit.source,
                        "bulletIndex": hit.bullet_index,
                        "matchIndex": hit.match_index,
                        "stepTitle": context.label,
                        "sourceText": source_text,
                        "timerKey": create_step_timer_key(context.step_index, index),
                    },
                )
            )

        timer_ids = [timer_id for timer_id in await asyncio.gather(*requests) if timer_id]
        logger.info(f"Created {len(timer_ids)} timers for step {context.step_key}")
        return timer_ids

    def clear_processed_steps(self) -> None:
        """Forget processed steps so their timers can be created again."""
        self._processed_steps.clear()
        self.bus.publish(Topics.REQUEST_STEPS_CLEAR)

    # ========================================================================
    # Internals
    # ========================================================================

    def _request(self, op: str, message: Any) -> bool:
        """Publish a control request and return the registry's success flag."""
        results: list[bool] = []

        def on_response(response: OperationResponse) -> None:
            if response.id == message.id:
                results.append(response.success)

        unsubscribe = self.bus.subscribe(Topics.response(op), on_response)
        try:
            self.bus.publish(Topics.request(op), message)
        finally:
            unsubscribe()
        return bool(results) and results[-1]

    def _on_step_changed(self, request: StepRequest) -> None:
        self.highlight_step(request.step_id)
