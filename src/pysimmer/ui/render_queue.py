"""
Render queue: serialized UI work per timer.

Translates bus lifecycle and tick events into view operations while
guaranteeing at most one render/update pass in flight per timer id.

Mechanics:
- Two ordered queues, ``render`` (first materialization) and ``update``
  (later refreshes), keyed by timer id. Re-enqueueing an id already
  waiting replaces its snapshot; the newest snapshot wins.
- Handlers never touch the view. They enqueue and schedule a drain on
  the next loop turn (``loop.call_soon``), which spawns a task running
  one pass. Each pass takes one entry; the next pass is scheduled when it
  ends. At most one pass per queue is in flight.
- An id in ``_processing`` is refused entry to both queues. The refused
  snapshot is parked, and the latest parked snapshot is re-enqueued when
  the in-flight pass for that id ends.
- An update for an id without a handle, or whose handle is no longer
  attached to the view, is redirected to the render queue.
- A removal for an id in flight is deferred until its pass ends.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Any, Literal

from pysimmer.bus import (
    CompletionNotice,
    EmptyRequest,
    MessageBus,
    StepHighlighted,
    TimerEvent,
    TimerRemoved,
    TimersCleared,
    TimersLoaded,
    Topics,
    Unsubscribe,
)
from pysimmer.models import TimerSnapshot
from pysimmer.ui.notifier import LogNotifier, Notifier
from pysimmer.ui.view import RenderHandle, TextView, TimerView

logger = logging.getLogger(__name__)

Kind = Literal["render", "update"]

_UPDATE_TOPICS = (
    Topics.STARTED,
    Topics.PAUSED,
    Topics.RESET,
    Topics.UPDATED,
    Topics.TICK,
    Topics.COMPLETED,
)


class RenderQueue:
    """UI coordinator between the bus and a TimerView.

    Usage:
        queue = RenderQueue(bus, TextView())
        queue.init()
        ...
        await queue.drained()
        print(queue.view.render())

    Args:
        bus: Message bus carrying timer events
        view: Rendering surface (TextView by default)
        notifier: Completion side channel (LogNotifier by default)
    """

    def __init__(
        self,
        bus: MessageBus,
        view: TimerView | None = None,
        notifier: Notifier | None = None,
    ):
        self._bus = bus
        self.view = view if view is not None else TextView()
        self.notifier = notifier if notifier is not None else LogNotifier()

        self._queues: dict[Kind, OrderedDict[str, TimerSnapshot]] = {
            "render": OrderedDict(),
            "update": OrderedDict(),
        }
        self._handles: dict[str, RenderHandle] = {}
        self._processing: set[str] = set()
        self._parked: dict[str, tuple[Kind, TimerSnapshot]] = {}
        self._pending_removals: set[str] = set()
        self._draining: set[Kind] = set()
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribers: list[Unsubscribe] = []
        self._idle = asyncio.Event()
        self._idle.set()

        self.passes = 0

    def __repr__(self) -> str:
        return (
            f"RenderQueue(handles={len(self._handles)}, "
            f"render={len(self._queues['render'])}, update={len(self._queues['update'])})"
        )

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def init(self) -> None:
        """Subscribe to timer events."""
        if self._unsubscribers:
            return
        subscriptions: list[tuple[str, Any]] = [
            (Topics.CREATED, self._on_created),
            (Topics.REMOVED, self._on_removed),
            (Topics.CLEARED, self._on_cleared),
            (Topics.LOADED, self._on_loaded),
            (Topics.INITIALIZED, self._on_initialized),
            (Topics.NOTIFY_COMPLETE, self._on_notify_complete),
            (Topics.HIGHLIGHT_STEP, self._on_highlight_step),
        ]
        subscriptions.extend((topic, self._on_changed) for topic in _UPDATE_TOPICS)
        for topic, handler in subscriptions:
            self._unsubscribers.append(self._bus.subscribe(topic, handler))

    async def dispose(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        for queue in self._queues.values():
            queue.clear()
        self._parked.clear()
        self._pending_removals.clear()
        self._processing.clear()
        self._draining.clear()
        self._idle.set()

    async def drained(self) -> None:
        """Wait until both queues are empty and nothing is in flight."""
        while self._busy():
            self._idle.clear()
            await self._idle.wait()

    # ========================================================================
    # Public API
    # ========================================================================

    def render_timer(self, timer: TimerSnapshot) -> None:
        self._enqueue("render", timer)

    def update_timer(self, timer: TimerSnapshot) -> None:
        self._enqueue("update", timer)

    def remove_timer(self, timer_id: str) -> None:
        for queue in self._queues.values():
            queue.pop(timer_id, None)
        self._parked.pop(timer_id, None)
        if timer_id in self._processing:
            self._pending_removals.add(timer_id)
            return
        self._start_removal(timer_id)

    def has_handle(self, timer_id: str) -> bool:
        return timer_id in self._handles

    def is_processing(self, timer_id: str) -> bool:
        return timer_id in self._processing

    def pending(self, kind: Kind) -> list[str]:
        """Ids waiting in one queue, in drain order."""
        return list(self._queues[kind])

    # ========================================================================
    # Bus handlers
    # ========================================================================

    def _on_created(self, event: TimerEvent) -> None:
        self.render_timer(event.timer)

    def _on_changed(self, event: TimerEvent) -> None:
        self.update_timer(event.timer)

    def _on_removed(self, event: TimerRemoved) -> None:
        self.remove_timer(event.id)

    def _on_loaded(self, event: TimersLoaded) -> None:
        for timer in event.timers:
            self.render_timer(timer)

    def _on_initialized(self, event: Any) -> None:
        self._bus.publish(Topics.REQUEST_GET_ALL, EmptyRequest())

    def _on_cleared(self, event: TimersCleared) -> None:
        for queue in self._queues.values():
            queue.clear()
        self._parked.clear()
        # Passes in flight may still create an element; remove it when they end
        self._pending_removals.update(self._processing)
        self._handles.clear()
        self._spawn(self.view.clear(), "clear")

    def _on_highlight_step(self, event: StepHighlighted) -> None:
        self.view.set_current_step(event.step_id)
        for timer in event.timers:
            self.update_timer(timer)

    async def _on_notify_complete(self, notice: CompletionNotice) -> None:
        await self.notifier.timer_complete(notice)

    # ========================================================================
    # Queueing
    # ========================================================================

    def _enqueue(self, kind: Kind, timer: TimerSnapshot) -> None:
        if timer.id in self._processing:
            parked = self._parked.get(timer.id)
            if parked is not None and parked[0] == "render":
                kind = "render"
            self._parked[timer.id] = (kind, timer)
            logger.debug(f"Timer {timer.id} in flight, parked {kind}")
            return

        queue = self._queues[kind]
        queue[timer.id] = timer
        self._idle.clear()
        self._schedule(kind)

    def _schedule(self, kind: Kind) -> None:
        if kind in self._draining or not self._queues[kind]:
            return
        self._draining.add(kind)
        loop = asyncio.get_running_loop()
        loop.call_soon(self._start_pass, kind)

    def _start_pass(self, kind: Kind) -> None:
        self._spawn(self._run_pass(kind), f"{kind}-pass")

    def _spawn(self, coroutine: Any, label: str) -> None:
        task = asyncio.get_running_loop().create_task(coroutine, name=f"render-queue-{label}")
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Render queue task {task.get_name()} failed: {task.exception()}")
        self._check_idle()

    def _take(self, kind: Kind) -> tuple[str, TimerSnapshot] | None:
        queue = self._queues[kind]
        for timer_id in queue:
            if timer_id not in self._processing:
                return timer_id, queue.pop(timer_id)
        return None

    async def _run_pass(self, kind: Kind) -> None:
        entry = self._take(kind)
        if entry is None:
            self._draining.discard(kind)
            return

        timer_id, timer = entry
        self._processing.add(timer_id)
        self.passes += 1
        try:
            if kind == "render":
                await self._render(timer)
            else:
                await self._update(timer)
        except Exception as e:
            logger.error(f"Error processing {kind} for timer {timer_id}: {e}")
        finally:
            self._processing.discard(timer_id)
            self._draining.discard(kind)
            self._finish(timer_id)
            self._schedule("render")
            self._schedule("update")

    def _finish(self, timer_id: str) -> None:
        if timer_id in self._pending_removals:
            self._pending_removals.discard(timer_id)
            self._parked.pop(timer_id, None)
            self._start_removal(timer_id)
            return
        parked = self._parked.pop(timer_id, None)
        if parked is not None:
            kind, timer = parked
            self._enqueue(kind, timer)

    async def _render(self, timer: TimerSnapshot) -> None:
        handle = self._handles.get(timer.id)
        if handle is not None:
            if self.view.is_attached(handle):
                await self.view.update_element(handle, timer)
                return
            logger.warning(f"Discarding stale render handle for timer {timer.id}")
            del self._handles[timer.id]

        self._handles[timer.id] = await self.view.create_element(timer)
        logger.debug(f"Rendered timer {timer.id}")

    async def _update(self, timer: TimerSnapshot) -> None:
        handle = self._handles.get(timer.id)
        if handle is None:
            self._redirect(timer)
            return
        if not self.view.is_attached(handle):
            logger.warning(f"Timer {timer.id} element detached, re-rendering")
            del self._handles[timer.id]
            self._redirect(timer)
            return
        await self.view.update_element(handle, timer)

    def _redirect(self, timer: TimerSnapshot) -> None:
        # Runs inside the pass for timer.id, so a newer refused snapshot may be parked
        parked = self._parked.get(timer.id)
        self._parked[timer.id] = ("render", parked[1] if parked is not None else timer)

    def _start_removal(self, timer_id: str) -> None:
        handle = self._handles.pop(timer_id, None)
        if handle is None:
            return
        self._idle.clear()
        self._spawn(self.view.remove_element(handle), f"remove-{timer_id}")

    # ========================================================================
    # Idle tracking
    # ========================================================================

    def _busy(self) -> bool:
        return bool(
            self._queues["render"]
            or self._queues["update"]
            or self._processing
            or self._parked
            or self._draining
            or self._tasks
        )

    def _check_idle(self) -> None:
        if not self._busy():
            self._idle.set()
