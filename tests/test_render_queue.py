"""Tests for the render queue: serialized passes, coalescing and stale handles."""

import asyncio

import pytest

from conftest import wait_for
from pysimmer.bus import CompletionNotice, MessageBus, Topics
from pysimmer.core import TimerRegistry
from pysimmer.models import TimerSnapshot, TimerStatus
from pysimmer.ui import LogNotifier, RenderQueue, TextView


def snapshot(timer_id: str = "timer_1", remaining: int = 100, **kwargs) -> TimerSnapshot:
    return TimerSnapshot(id=timer_id, name="Pasta", duration=100, remaining=remaining, **kwargs)


class InstrumentedView(TextView):
    """TextView whose operations yield to the loop and record overlap per id."""

    def __init__(self):
        super().__init__()
        self.active: set[str] = set()
        self.overlaps = 0
        self.seen: list[int] = []

    async def _enter(self, timer_id: str) -> None:
        if timer_id in self.active:
            self.overlaps += 1
        self.active.add(timer_id)
        await asyncio.sleep(0)
        await asyncio.sleep(0)

    async def create_element(self, timer):
        await self._enter(timer.id)
        try:
            return await super().create_element(timer)
        finally:
            self.active.discard(timer.id)

    async def update_element(self, handle, timer):
        await self._enter(timer.id)
        try:
            self.seen.append(timer.remaining)
            await super().update_element(handle, timer)
        finally:
            self.active.discard(timer.id)


@pytest.mark.asyncio
async def test_created_event_renders_row(bus: MessageBus, render_queue: RenderQueue, view: TextView):
    bus.publish(Topics.CREATED, {"timer": snapshot().to_dict()})

    await render_queue.drained()

    assert render_queue.has_handle("timer_1")
    assert view.row_text("timer_1").startswith("Pasta")
    assert "01:40" in view.row_text("timer_1")
    assert "  0%" in view.row_text("timer_1")


@pytest.mark.asyncio
async def test_row_shows_completion_percentage(render_queue: RenderQueue, view: TextView):
    render_queue.render_timer(snapshot(remaining=40, status=TimerStatus.RUNNING))

    await render_queue.drained()

    assert view.row_text("timer_1") == f"{'Pasta':<24} 00:40  60%  running"


@pytest.mark.asyncio
async def test_enqueue_does_not_render_synchronously(
    bus: MessageBus, render_queue: RenderQueue, view: TextView
):
    render_queue.render_timer(snapshot())

    assert view.created == 0
    assert render_queue.pending("render") == ["timer_1"]
    await render_queue.drained()
    assert view.created == 1


@pytest.mark.concurrency
@pytest.mark.asyncio
async def test_rapid_ticks_never_overlap_for_one_id(bus: MessageBus):
    view = InstrumentedView()
    queue = RenderQueue(bus, view)
    queue.init()
    bus.publish(Topics.CREATED, {"timer": snapshot().to_dict()})
    await queue.drained()

    for remaining in range(99, 49, -1):
        bus.publish(Topics.TICK, {"timer": snapshot(remaining=remaining).to_dict()})
        await asyncio.sleep(0)

    await queue.drained()

    assert view.overlaps == 0
    assert view.seen == sorted(view.seen, reverse=True)
    assert view.seen[-1] == 50
    assert "00:50" in view.row_text("timer_1")
    await queue.dispose()


@pytest.mark.asyncio
async def test_latest_snapshot_wins_while_queued(render_queue: RenderQueue, view: TextView):
    render_queue.render_timer(snapshot())
    await render_queue.drained()

    for remaining in (90, 80, 70):
        render_queue.update_timer(snapshot(remaining=remaining))

    assert render_queue.pending("update") == ["timer_1"]
    await render_queue.drained()
    assert view.updated == 1
    assert "01:10" in view.row_text("timer_1")


@pytest.mark.asyncio
async def test_update_without_handle_is_rendered(render_queue: RenderQueue, view: TextView):
    render_queue.update_timer(snapshot(remaining=42))

    await render_queue.drained()

    assert view.created == 1
    assert "00:42" in view.row_text("timer_1")


@pytest.mark.asyncio
async def test_detached_handle_is_discarded_and_rerendered(
    render_queue: RenderQueue, view: TextView, caplog
):
    render_queue.render_timer(snapshot())
    await render_queue.drained()
    view.detach("timer_1")

    render_queue.update_timer(snapshot(remaining=30))
    await render_queue.drained()

    assert view.created == 2
    assert "00:30" in view.row_text("timer_1")
    assert "re-rendering" in caplog.text


@pytest.mark.asyncio
async def test_render_with_attached_handle_updates_in_place(render_queue: RenderQueue, view: TextView):
    render_queue.render_timer(snapshot())
    await render_queue.drained()

    render_queue.render_timer(snapshot(remaining=60))
    await render_queue.drained()

    assert (view.created, view.updated, len(view)) == (1, 1, 1)


@pytest.mark.concurrency
@pytest.mark.asyncio
async def test_removal_during_pass_applies_when_pass_ends(bus: MessageBus):
    view = InstrumentedView()
    queue = RenderQueue(bus, view)
    queue.init()

    queue.render_timer(snapshot())
    await wait_for(lambda: queue.is_processing("timer_1"), interval=0)
    bus.publish(Topics.REMOVED, {"id": "timer_1"})

    await queue.drained()

    assert not queue.has_handle("timer_1")
    assert view.row_text("timer_1") is None
    await queue.dispose()


@pytest.mark.asyncio
async def test_cleared_event_empties_view(bus: MessageBus, render_queue: RenderQueue, view: TextView):
    for n in range(3):
        render_queue.render_timer(snapshot(timer_id=f"timer_{n}"))
    await render_queue.drained()

    bus.publish(Topics.CLEARED)
    await render_queue.drained()

    assert len(view) == 0
    assert not render_queue.has_handle("timer_0")


@pytest.mark.asyncio
async def test_completion_notice_reaches_notifier(
    bus: MessageBus, render_queue: RenderQueue, notifier: LogNotifier
):
    bus.publish(Topics.NOTIFY_COMPLETE, {"id": "timer_1", "name": "Eggs"})

    await bus.drain()

    assert [(n.name, n.play_sound) for n in notifier.notices] == [("Eggs", True)]


@pytest.mark.asyncio
async def test_notifier_keeps_only_recent_notices():
    notifier = LogNotifier(history=3)

    for n in range(5):
        await notifier.timer_complete(CompletionNotice(id=f"timer_{n}", name=f"T{n}"))

    assert [notice.name for notice in notifier.notices] == ["T2", "T3", "T4"]


@pytest.mark.asyncio
async def test_highlight_marks_current_step(bus: MessageBus, render_queue: RenderQueue, view: TextView):
    in_step = snapshot(metadata={"stepId": 3, "phaseStepNumber": 2})
    render_queue.render_timer(in_step)
    await render_queue.drained()

    bus.publish(Topics.HIGHLIGHT_STEP, {"stepId": 3, "timers": [in_step]})
    await render_queue.drained()

    assert view.row_text("timer_1").endswith("[Step 2 •]")


@pytest.mark.asyncio
async def test_registry_initialization_renders_stored_timers(
    bus: MessageBus, render_queue: RenderQueue, view: TextView, memory_store
):
    await memory_store.save(
        "recipe-viewer-timers",
        [snapshot(status=TimerStatus.PAUSED, remaining=20).to_dict()],
    )
    registry = TimerRegistry(bus, memory_store)

    await registry.init()
    await render_queue.drained()

    assert "00:20" in view.row_text("timer_1")
    assert "paused" in view.row_text("timer_1")
    await registry.dispose()
