"""
Countdown timer entity.

A Timer is the state machine and data holder for one countdown. It owns
its periodic tick: an ``asyncio.Task`` that exists if and only if the
timer is running. Each tick decrements ``remaining``, publishes
``timer:tick`` with the current snapshot, and completes the timer when
``remaining`` reaches zero.

Completion is announced on the bus (``timer:completed``), never through a
stored callback, so the entity stays serializable.

State machine:
    idle --start--> running --pause--> paused --start--> running
    running --(remaining == 0)--> completed
    any non-completed --complete()--> completed
    any --reset--> idle (remaining = duration)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from uuid_extensions import uuid7

from pysimmer.bus import MessageBus, TimerEvent, Topics
from pysimmer.config import DEFAULT_DURATION, DEFAULT_TIMER_NAME, TICK_INTERVAL
from pysimmer.core.errors import TimerError
from pysimmer.models import TimerSnapshot, TimerStatus, format_clock

logger = logging.getLogger(__name__)


def new_timer_id() -> str:
    """Generate a time-ordered timer id (``timer_<uuid7>``)."""
    return f"timer_{uuid7()}"


class Timer:
    """One countdown.

    The registry is the only long-lived owner of Timer instances. Other
    components receive ``TimerSnapshot`` copies through bus events.

    Example:
        ```python
        timer = Timer("Pasta", 600, bus=bus)
        timer.start()      # ticks once per second on the running loop
        timer.pause()
        timer.reset()
        ```

    Args:
        name: Display label, defaults to "Timer"
        duration: Total seconds (> 0)
        metadata: Contextual attributes (copied)
        id: Explicit id, generated when omitted
        bus: Bus receiving ``timer:tick`` and ``timer:completed``
        tick_interval: Seconds between ticks
    """

    def __init__(
        self,
        name: str = DEFAULT_TIMER_NAME,
        duration: int = DEFAULT_DURATION,
        metadata: Mapping[str, Any] | None = None,
        *,
        id: str | None = None,
        bus: MessageBus | None = None,
        tick_interval: float = TICK_INTERVAL,
        created_at: datetime | None = None,
    ):
        duration = int(duration)
        if duration <= 0:
            raise TimerError(f"Timer duration must be positive, got {duration}")
        if tick_interval <= 0:
            raise TimerError(f"Tick interval must be positive, got {tick_interval}")

        self.id = id or new_timer_id()
        self.name = name or DEFAULT_TIMER_NAME
        self.duration = duration
        self.remaining = duration
        self.status = TimerStatus.IDLE
        self.metadata: dict[str, Any] = dict(metadata or {})
        self.created_at = created_at or datetime.now(UTC)
        self.started_at: datetime | None = None
        self.paused_at: datetime | None = None

        self._bus = bus
        self._tick_interval = tick_interval
        self._tick_task: asyncio.Task | None = None

    def __repr__(self) -> str:
        return (
            f"Timer(id={self.id!r}, name={self.name!r}, "
            f"remaining={self.remaining}/{self.duration}, status={self.status})"
        )

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self.status == TimerStatus.RUNNING

    @property
    def is_paused(self) -> bool:
        return self.status == TimerStatus.PAUSED

    @property
    def is_complete(self) -> bool:
        return self.status == TimerStatus.COMPLETED

    @property
    def is_ticking(self) -> bool:
        """True while a tick task is scheduled."""
        return self._tick_task is not None and not self._tick_task.done()

    @property
    def completion_pct(self) -> float:
        """Elapsed share of the duration, clamped to [0, 100]."""
        pct = (self.duration - self.remaining) / self.duration * 100
        return max(0.0, min(100.0, pct))

    @property
    def formatted_time(self) -> str:
        """Remaining time as MM:SS."""
        return format_clock(self.remaining)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """
        Start (or resume) counting down.

        No-op on a ticking or completed timer. A timer restored as running
        has no tick task and starts again here.

        Returns:
            True if the timer transitioned to running

        Raises:
            RuntimeError: If called outside a running event loop
        """
        if self.status == TimerStatus.COMPLETED or self.is_ticking:
            return False

        loop = asyncio.get_running_loop()
        self._cancel_tick()
        self.status = TimerStatus.RUNNING
        self.started_at = datetime.now(UTC)
        self._tick_task = loop.create_task(self._run(), name=f"tick-{self.id}")
        logger.debug(f"Timer {self.id} started at {self.remaining}s")
        return True

    def pause(self) -> bool:
        """Suspend a running timer. No-op otherwise."""
        if self.status != TimerStatus.RUNNING:
            return False
        self._cancel_tick()
        self.status = TimerStatus.PAUSED
        self.paused_at = datetime.now(UTC)
        return True

    def reset(self) -> None:
        """Return to idle with the full duration remaining, from any state."""
        self._cancel_tick()
        self.status = TimerStatus.IDLE
        self.remaining = self.duration
        self.started_at = None
        self.paused_at = None

    def complete(self) -> bool:
        """
        Finish the timer and publish ``timer:completed``.

        Returns:
            False if the timer was already completed (nothing published)
        """
        if self.status == TimerStatus.COMPLETED:
            return False
        self._cancel_tick()
        self.status = TimerStatus.COMPLETED
        self.remaining = 0
        logger.info(f"Timer {self.id} ({self.name}) completed")
        self._publish(Topics.COMPLETED)
        return True

    def tick(self) -> None:
        """
        Advance one period.

        Called by the tick task; public so tests can drive the clock.
        Ignored unless running.
        """
        if self.status != TimerStatus.RUNNING:
            return
        self.remaining = max(0, self.remaining - 1)
        if self.remaining % 10 == 0 or self.remaining <= 5:
            logger.debug(f"Timer {self.id} tick: {self.remaining}s remaining")
        self._publish(Topics.TICK)
        if self.remaining == 0:
            self.complete()

    def cancel(self) -> None:
        """Stop ticking without changing status. Used when the timer is dropped."""
        self._cancel_tick()

    def rename(self, name: str) -> None:
        if not name:
            raise TimerError("Timer name must not be empty")
        self.name = name

    def add_metadata(self, metadata: Mapping[str, Any]) -> None:
        """Shallow-merge metadata into the existing mapping."""
        self.metadata = {**self.metadata, **metadata}

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> TimerSnapshot:
        return TimerSnapshot(
            id=self.id,
            name=self.name,
            duration=self.duration,
            remaining=self.remaining,
            status=self.status,
            completion=self.completion_pct,
            metadata=self.metadata,
            created_at=self.created_at,
        )

    @classmethod
    def from_snapshot(
        cls,
        snapshot: TimerSnapshot,
        *,
        bus: MessageBus | None = None,
        tick_interval: float = TICK_INTERVAL,
    ) -> Timer:
        """
        Rebuild a timer with its recorded status and remaining time.

        The result never ticks, whatever the recorded status: a timer saved
        as running comes back frozen at its last remaining value and must be
        started again.
        """
        timer = cls(
            snapshot.name,
            snapshot.duration,
            snapshot.metadata,
            id=snapshot.id,
            bus=bus,
            tick_interval=tick_interval,
            created_at=snapshot.created_at,
        )
        timer.remaining = max(0, min(snapshot.remaining, snapshot.duration))
        timer.status = snapshot.status
        if timer.status == TimerStatus.COMPLETED:
            timer.remaining = 0
        return timer

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        while self.status == TimerStatus.RUNNING:
            await asyncio.sleep(self._tick_interval)
            self.tick()

    def _cancel_tick(self) -> None:
        task, self._tick_task = self._tick_task, None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # Completion reached from inside the tick task: the loop exits on its own
        if task is not current:
            task.cancel()

    def _publish(self, topic: str) -> None:
        if self._bus is not None:
            self._bus.publish(topic, TimerEvent(timer=self.snapshot()))
