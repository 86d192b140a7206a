"""Tests for the Timer entity state machine and its tick task."""

import asyncio

import pytest

from conftest import FAST_TICK, wait_for
from pysimmer.bus import MessageBus, Topics
from pysimmer.core import Timer, TimerError
from pysimmer.models import TimerSnapshot, TimerStatus

# Long enough that the tick task never fires while a test drives tick() by hand
MANUAL = 3600.0


def test_new_timer_is_idle_with_full_duration():
    timer = Timer("Pasta", 600)

    assert timer.status == TimerStatus.IDLE
    assert timer.remaining == 600
    assert timer.id.startswith("timer_")
    assert timer.formatted_time == "10:00"
    assert timer.completion_pct == 0.0


def test_defaults_and_invalid_durations():
    assert Timer().name == "Timer"
    assert Timer("").name == "Timer"
    assert Timer().duration == 60

    with pytest.raises(TimerError):
        Timer("Bad", 0)
    with pytest.raises(TimerError):
        Timer("Bad", -5)
    with pytest.raises(TimerError):
        Timer("Bad", 5, tick_interval=0)


def test_ids_are_unique():
    ids = [Timer("t", 1).id for _ in range(20)]

    assert len(set(ids)) == 20


@pytest.mark.asyncio
async def test_start_twice_keeps_one_tick_task():
    timer = Timer("Rice", 100, tick_interval=MANUAL)

    assert timer.start() is True
    first_task = timer._tick_task
    assert timer.start() is False

    assert timer._tick_task is first_task
    assert timer.is_ticking
    timer.cancel()


@pytest.mark.asyncio
async def test_pause_stops_ticking_and_start_resumes():
    timer = Timer("Rice", 100, tick_interval=MANUAL)
    timer.start()
    timer.tick()
    timer.tick()

    assert timer.pause() is True
    assert timer.status == TimerStatus.PAUSED
    assert not timer.is_ticking
    assert timer.remaining == 98

    timer.tick()
    assert timer.remaining == 98

    assert timer.start() is True
    assert timer.is_running
    timer.cancel()


def test_pause_is_noop_unless_running():
    timer = Timer("Rice", 100)

    assert timer.pause() is False
    assert timer.status == TimerStatus.IDLE


@pytest.mark.asyncio
async def test_reset_restores_idle_from_any_state():
    timer = Timer("Rice", 30, tick_interval=MANUAL)
    timer.start()
    timer.tick()
    timer.reset()
    assert (timer.status, timer.remaining, timer.is_ticking) == (TimerStatus.IDLE, 30, False)

    timer.start()
    timer.pause()
    timer.reset()
    assert (timer.status, timer.remaining) == (TimerStatus.IDLE, 30)

    timer.complete()
    timer.reset()
    assert (timer.status, timer.remaining) == (TimerStatus.IDLE, 30)


@pytest.mark.asyncio
async def test_tick_publishes_snapshot(bus: MessageBus, record):
    recorder = record(Topics.TICK)
    timer = Timer("Eggs", 5, bus=bus, tick_interval=MANUAL)
    timer.start()

    timer.tick()
    timer.tick()

    remaining = [event.timer.remaining for event in recorder.on(Topics.TICK)]
    assert remaining == [4, 3]
    timer.cancel()


@pytest.mark.asyncio
async def test_reaching_zero_completes_once(bus: MessageBus, record):
    recorder = record(Topics.TICK, Topics.COMPLETED)
    timer = Timer("Eggs", 2, bus=bus, tick_interval=MANUAL)
    timer.start()

    timer.tick()
    timer.tick()
    timer.tick()

    assert timer.status == TimerStatus.COMPLETED
    assert timer.remaining == 0
    assert not timer.is_ticking
    assert len(recorder.on(Topics.COMPLETED)) == 1
    assert recorder.topics() == [Topics.TICK, Topics.TICK, Topics.COMPLETED]


@pytest.mark.asyncio
async def test_completed_timer_does_not_restart():
    timer = Timer("Eggs", 2)
    assert timer.complete() is True
    assert timer.complete() is False

    assert timer.start() is False
    assert not timer.is_ticking


@pytest.mark.slow
@pytest.mark.asyncio
async def test_tick_task_runs_to_completion(bus: MessageBus, record):
    recorder = record(Topics.COMPLETED)
    timer = Timer("Quick", 3, bus=bus, tick_interval=FAST_TICK)
    timer.start()

    await wait_for(lambda: timer.is_complete)
    await asyncio.sleep(FAST_TICK * 3)

    assert timer.remaining == 0
    assert len(recorder.on(Topics.COMPLETED)) == 1
    assert not timer.is_ticking


def test_start_outside_loop_raises():
    timer = Timer("Rice", 10)

    with pytest.raises(RuntimeError):
        timer.start()
    assert timer.status == TimerStatus.IDLE


def test_rename_and_metadata_merge():
    timer = Timer("Rice", 10, {"stepId": 1, "source": "main"})

    timer.rename("Basmati")
    timer.add_metadata({"source": "bullet", "bulletIndex": 0})

    assert timer.name == "Basmati"
    assert timer.metadata == {"stepId": 1, "source": "bullet", "bulletIndex": 0}
    with pytest.raises(TimerError):
        timer.rename("")


def test_snapshot_is_immutable_copy():
    timer = Timer("Rice", 10, {"stepId": 1})
    snapshot = timer.snapshot()

    timer.add_metadata({"stepId": 2})

    assert snapshot.metadata["stepId"] == 1
    with pytest.raises(TypeError):
        snapshot.metadata["stepId"] = 3


def test_from_snapshot_never_ticks_and_keeps_remaining():
    snapshot = TimerSnapshot(
        id="timer_x", name="Stew", duration=100, remaining=40, status=TimerStatus.RUNNING
    )

    timer = Timer.from_snapshot(snapshot)

    assert timer.id == "timer_x"
    assert timer.status == TimerStatus.RUNNING
    assert timer.remaining == 40
    assert not timer.is_ticking


def test_from_completed_snapshot_has_no_time_left():
    snapshot = TimerSnapshot(
        id="timer_x", name="Stew", duration=100, remaining=40, status=TimerStatus.COMPLETED
    )

    assert Timer.from_snapshot(snapshot).remaining == 0


@pytest.mark.asyncio
async def test_timer_restored_as_running_starts_ticking():
    snapshot = TimerSnapshot(
        id="timer_x", name="Stew", duration=100, remaining=40, status=TimerStatus.RUNNING
    )
    timer = Timer.from_snapshot(snapshot, tick_interval=MANUAL)

    assert timer.start() is True
    assert timer.is_ticking
    assert timer.start() is False
    timer.cancel()
