"""Status enumeration for countdown timers.

Defines the lifecycle states of a single timer entity.
"""

from enum import Enum


class TimerStatus(Enum):
    """Status of a countdown timer.

    Lifecycle:
        IDLE → RUNNING ⇄ PAUSED → COMPLETED

    RESET returns any state to IDLE with the full duration remaining.
    COMPLETED is terminal for ticking: only reset leaves it.
    """

    IDLE = "idle"
    """Timer created or reset, not counting down."""

    RUNNING = "running"
    """Timer is counting down once per tick."""

    PAUSED = "paused"
    """Timer was running and is suspended at its current remaining time."""

    COMPLETED = "completed"
    """Timer reached zero (or was completed explicitly)."""

    @property
    def is_active(self) -> bool:
        """Check if this status owns a periodic tick."""
        return self == TimerStatus.RUNNING

    @property
    def is_terminal(self) -> bool:
        """Check if this status is terminal (no more ticks expected)."""
        return self == TimerStatus.COMPLETED

    @classmethod
    def parse(cls, value: "str | TimerStatus | None") -> "TimerStatus":
        """Parse a stored status value, defaulting to IDLE for unknown input."""
        if isinstance(value, TimerStatus):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.IDLE

    def __str__(self) -> str:
        return self.value
