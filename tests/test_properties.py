"""
Property-based tests for pysimmer using Hypothesis.

These tests generate many cases to check the invariants of:
- The timer state machine (bounds, reset, single tick task)
- Duplicate suppression of step timers
- Duration extraction
- Snapshot records and completion percentages
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from conftest import durations, operations, timer_names
from pysimmer.bus import MessageBus, Topics
from pysimmer.commands import calculate_completion, extract_duration
from pysimmer.core import Timer, TimerRegistry, resolve_timer_name
from pysimmer.models import TimerSnapshot, TimerStatus

MANUAL = 3600.0

UNITS = {"hour": 3600, "hr": 3600, "minutes": 60, "min": 60, "seconds": 1, "sec": 1}


# ==============================================================================
# PROPERTY 1: Timer bounds hold after every operation
# ==============================================================================


@pytest.mark.property
@pytest.mark.asyncio
@given(duration=durations, ops=operations)
@settings(max_examples=100, deadline=None)
async def test_remaining_stays_within_bounds(duration, ops):
    """
    Property: 0 <= remaining <= duration after start, pause, reset and tick,
    and a tick task exists exactly while the timer is running.
    """
    timer = Timer("Prop", duration, tick_interval=MANUAL)
    try:
        for op in ops:
            getattr(timer, op)()
            assert 0 <= timer.remaining <= timer.duration
            assert timer.is_ticking == (timer.status == TimerStatus.RUNNING)
            if op == "reset":
                assert timer.status == TimerStatus.IDLE
                assert timer.remaining == timer.duration
    finally:
        timer.cancel()


# ==============================================================================
# PROPERTY 2: Completion is published exactly once
# ==============================================================================


@pytest.mark.property
@pytest.mark.asyncio
@given(duration=st.integers(min_value=1, max_value=30), extra=st.integers(min_value=0, max_value=10))
@settings(max_examples=50, deadline=None)
async def test_completion_published_once(duration, extra):
    bus = MessageBus()
    completed = []
    bus.subscribe(Topics.COMPLETED, completed.append)
    timer = Timer("Prop", duration, bus=bus, tick_interval=MANUAL)
    timer.start()

    for _ in range(duration + extra):
        timer.tick()

    assert timer.status == TimerStatus.COMPLETED
    assert len(completed) == 1
    assert not timer.is_ticking


# ==============================================================================
# PROPERTY 3: Identical step coordinates create one timer
# ==============================================================================


@pytest.mark.property
@pytest.mark.asyncio
@given(
    step_id=st.integers(min_value=0, max_value=50),
    source=st.sampled_from(["main", "bullet"]),
    match_index=st.integers(min_value=0, max_value=500),
    duration=durations,
    repeats=st.integers(min_value=2, max_value=5),
)
@settings(max_examples=50, deadline=None)
async def test_duplicate_signatures_create_one_timer(step_id, source, match_index, duration, repeats):
    registry = TimerRegistry(MessageBus())
    metadata = {"stepId": step_id, "source": source, "bulletIndex": 0, "matchIndex": match_index}

    ids = [registry.create(duration=duration, metadata=metadata) for _ in range(repeats)]

    assert ids[0] is not None
    assert ids[1:] == [None] * (repeats - 1)
    assert len(registry) == 1
    await registry.dispose()


# ==============================================================================
# PROPERTY 4: Durations and ranges
# ==============================================================================


@pytest.mark.property
@given(
    low=st.integers(min_value=1, max_value=99),
    span=st.integers(min_value=0, max_value=50),
    unit=st.sampled_from(sorted(UNITS)),
)
def test_range_uses_upper_bound(low, span, unit):
    high = low + span

    assert extract_duration(f"cook for {low}-{high} {unit}") == high * UNITS[unit]


# ==============================================================================
# PROPERTY 5: Snapshot records and completion
# ==============================================================================


@pytest.mark.property
@given(
    name=timer_names,
    duration=durations,
    data=st.data(),
    status=st.sampled_from(list(TimerStatus)),
)
def test_snapshot_record_round_trip(name, duration, data, status):
    remaining = data.draw(st.integers(min_value=0, max_value=duration))
    snapshot = TimerSnapshot(
        id="timer_p", name=name, duration=duration, remaining=remaining, status=status
    )

    restored = TimerSnapshot.from_dict(snapshot.to_dict())

    assert (restored.name, restored.duration, restored.remaining, restored.status) == (
        name,
        duration,
        remaining,
        status,
    )


@pytest.mark.property
@given(total=durations, data=st.data())
def test_completion_is_bounded(total, data):
    remaining = data.draw(st.integers(min_value=0, max_value=total))

    pct = calculate_completion(total, remaining)

    assert 0 <= pct <= 100
    if remaining == 0:
        assert pct == 100
    if remaining == total:
        assert pct == 0


# ==============================================================================
# PROPERTY 6: Exact names always resolve
# ==============================================================================


@pytest.mark.property
@given(names=st.lists(timer_names, min_size=1, max_size=8, unique_by=str.lower), data=st.data())
def test_exact_name_resolves_to_its_timer(names, data):
    timers = [Timer(name, 60) for name in names]
    target = data.draw(st.sampled_from(timers))

    assert resolve_timer_name(target.name.lower(), timers) == target.id
