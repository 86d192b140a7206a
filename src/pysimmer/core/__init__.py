"""Timer entity, registry and name resolution.

    - Timer: one countdown state machine owning its tick task
    - TimerRegistry: owner of all timers, bus request handlers, persistence
    - resolve_timer_name: multi-strategy fuzzy name matching
"""

from pysimmer.core.errors import SignatureError, TimerError
from pysimmer.core.registry import TimerRegistry
from pysimmer.core.resolver import resolve_timer_name, significant_words
from pysimmer.core.signature import TimerSignature, step_key_for, timer_signature
from pysimmer.core.timer import Timer, new_timer_id
from pysimmer.core.writer import SnapshotWriter

__all__ = [
    "SignatureError",
    "SnapshotWriter",
    "Timer",
    "TimerError",
    "TimerRegistry",
    "TimerSignature",
    "new_timer_id",
    "resolve_timer_name",
    "significant_words",
    "step_key_for",
    "timer_signature",
]
