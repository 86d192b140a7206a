"""
Pytest configuration and fixtures for pysimmer tests.

Provides reusable fixtures for the bus, snapshot stores, registry, render
queue and the composed module, plus small helpers for driving timers.
"""

import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import pytest
from hypothesis import strategies as st

from pysimmer.bus import MessageBus
from pysimmer.core import TimerRegistry
from pysimmer.module import TimerModule
from pysimmer.storage import InMemorySnapshotStore, SqliteSnapshotStore
from pysimmer.ui import LogNotifier, RenderQueue, TextView

FAST_TICK = 0.01
"""Tick interval used by tests that let timers run on the loop."""


class Recorder:
    """Collects every message published on the topics it listens to."""

    def __init__(self, bus: MessageBus, *topics: str):
        self.messages: list[tuple[str, Any]] = []
        self._unsubscribers = [
            bus.subscribe(topic, lambda message, topic=topic: self.messages.append((topic, message)))
            for topic in topics
        ]

    def on(self, topic: str) -> list[Any]:
        return [message for seen, message in self.messages if seen == topic]

    def topics(self) -> list[str]:
        return [topic for topic, _ in self.messages]

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()


@pytest.fixture
def bus() -> MessageBus:
    return MessageBus()


@pytest.fixture
def record(bus: MessageBus):
    """Factory fixture: ``record(*topics)`` returns a Recorder on the shared bus."""
    recorders: list[Recorder] = []

    def make(*topics: str) -> Recorder:
        recorder = Recorder(bus, *topics)
        recorders.append(recorder)
        return recorder

    yield make
    for recorder in recorders:
        recorder.close()


@pytest.fixture
def memory_store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    return tmp_path / "timers.db"


@pytest.fixture
async def sqlite_store(temp_db_path: Path) -> AsyncGenerator[SqliteSnapshotStore, None]:
    """SQLite file-backed store with automatic cleanup."""
    store = SqliteSnapshotStore(str(temp_db_path))
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
async def registry(
    bus: MessageBus, memory_store: InMemorySnapshotStore
) -> AsyncGenerator[TimerRegistry, None]:
    """Initialized registry with a fast tick and no auto-start delay."""
    registry = TimerRegistry(bus, memory_store, tick_interval=FAST_TICK, auto_start_delay=0)
    await registry.init()
    yield registry
    await registry.dispose()


@pytest.fixture
def view() -> TextView:
    return TextView()


@pytest.fixture
def notifier() -> LogNotifier:
    return LogNotifier()


@pytest.fixture
async def render_queue(
    bus: MessageBus, view: TextView, notifier: LogNotifier
) -> AsyncGenerator[RenderQueue, None]:
    queue = RenderQueue(bus, view, notifier)
    queue.init()
    yield queue
    await queue.dispose()


@pytest.fixture
async def module(
    bus: MessageBus, memory_store: InMemorySnapshotStore, view: TextView, notifier: LogNotifier
) -> AsyncGenerator[TimerModule, None]:
    """Fully wired module on the shared bus and in-memory store."""
    module = (
        TimerModule(bus)
        .with_storage(memory_store)
        .with_view(view)
        .with_notifier(notifier)
        .with_tick_interval(FAST_TICK)
        .with_auto_start_delay(0)
        .with_create_timeout(0.5)
    )
    await module.init()
    yield module
    await module.dispose()


async def wait_for(predicate, timeout: float = 2.0, interval: float = 0.005) -> None:
    """Poll predicate on the running loop until it holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("Condition not reached before timeout")
        await asyncio.sleep(interval)


# Hypothesis strategies for property-based testing

timer_names = st.text(
    min_size=1, max_size=30, alphabet=st.characters(whitelist_categories=("Lu", "Ll"))
)

durations = st.integers(min_value=1, max_value=3600)

operations = st.lists(st.sampled_from(["start", "pause", "reset", "tick"]), max_size=40)
