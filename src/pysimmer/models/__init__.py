"""Core data models for timer orchestration.

Defines the timer lifecycle status and the immutable snapshot that
crosses component boundaries.

Design: Dependency-Free Models
These types have no dependencies on bus, core or storage modules to
prevent circular imports and enable clean layering.
"""

from pysimmer.models.snapshot import TimerSnapshot, format_clock
from pysimmer.models.status import TimerStatus

__all__ = [
    "TimerSnapshot",
    "format_clock",
    "TimerStatus",
]
