"""
pysimmer: timer orchestration for cooking workflows

Countdown timers driven by a single asyncio event loop, coordinated over
an in-process message bus, persisted as one snapshot record, rendered
through a serialized render queue and controlled with free-text
commands.

Design Pattern: Façade Pattern
This module re-exports the pieces most callers need; the composition
root ``TimerModule`` builds and wires the rest.

Example:
    ```python
    import asyncio
    from pysimmer import TimerModule, TextView

    async def main():
        view = TextView()
        async with TimerModule().with_view(view) as module:
            await module.create_timer(name="Pasta", duration=600, auto_start=True)
            module.process_command("simmer the sauce for 10 minutes")
            await asyncio.sleep(2)
            print(view.render())

    asyncio.run(main())
    ```
"""

from pysimmer.bus import MessageBus, Topics
from pysimmer.commands import (
    CommandInterpreter,
    extract_duration,
    find_timers_in_step,
    generate_timer_name,
    resolve_timer_name,
)
from pysimmer.core import SignatureError, Timer, TimerError, TimerRegistry
from pysimmer.models import TimerSnapshot, TimerStatus
from pysimmer.module import StepContext, TimerModule
from pysimmer.storage import InMemorySnapshotStore, SnapshotStore, StorageError
from pysimmer.ui import LogNotifier, Notifier, RenderQueue, TextView, TimerView

__version__ = "0.1.0"

__all__ = [
    # Composition root
    "TimerModule",
    "StepContext",
    # Bus
    "MessageBus",
    "Topics",
    # Core
    "Timer",
    "TimerRegistry",
    "TimerError",
    "SignatureError",
    "TimerSnapshot",
    "TimerStatus",
    # Commands
    "CommandInterpreter",
    "extract_duration",
    "find_timers_in_step",
    "generate_timer_name",
    "resolve_timer_name",
    # Storage
    "SnapshotStore",
    "InMemorySnapshotStore",
    "StorageError",
    # UI
    "RenderQueue",
    "TimerView",
    "TextView",
    "Notifier",
    "LogNotifier",
]
