"""Serializable timer snapshot.

Snapshots are what leaves the registry: bus events carry them, the
render queue draws them, and the snapshot store persists them.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from pysimmer.models.status import TimerStatus


def format_clock(seconds: int) -> str:
    """Format a second count as MM:SS (minutes are not wrapped at 60)."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"


@dataclass(frozen=True)
class TimerSnapshot:
    """Immutable point-in-time view of one timer.

    Design: Value Object
        Consumers (render queue, interpreter, persistence) never hold the
        live entity, only this copy. The metadata mapping is read-only.

    Persistence format (one element of the stored array):

        {"id", "name", "duration", "remainingTime", "status",
         "completion", "metadata", "createdAt"}

    ``createdAt`` is ISO 8601 text and is omitted when unknown.
    """

    id: str
    """Opaque unique timer identifier."""

    name: str
    """Human readable label."""

    duration: int
    """Total seconds, fixed at creation."""

    remaining: int
    """Seconds left when the snapshot was taken."""

    status: TimerStatus = TimerStatus.IDLE
    """Lifecycle state when the snapshot was taken."""

    completion: float = 0.0
    """Completion percentage in [0, 100]."""

    metadata: Mapping[str, Any] = field(default_factory=dict)
    """Contextual attributes (step index, phase, source sentence, ...)."""

    created_at: datetime | None = None
    """Creation time of the timer, informational only."""

    def __post_init__(self) -> None:
        if not isinstance(self.metadata, MappingProxyType):
            object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def is_running(self) -> bool:
        return self.status == TimerStatus.RUNNING

    @property
    def formatted_time(self) -> str:
        return format_clock(self.remaining)

    @property
    def step_id(self) -> Any:
        """Originating step identifier, None for free-standing timers."""
        return self.metadata.get("stepId")

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted record format."""
        record = {
            "id": self.id,
            "name": self.name,
            "duration": self.duration,
            "remainingTime": self.remaining,
            "status": self.status.value,
            "completion": self.completion,
            "metadata": dict(self.metadata),
        }
        if self.created_at is not None:
            record["createdAt"] = self.created_at.isoformat()
        return record

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TimerSnapshot":
        """Rebuild a snapshot from a persisted record.

        Raises:
            KeyError: If ``id`` is missing
            ValueError: If ``duration`` is not a positive integer or
                ``createdAt`` is not ISO 8601 text
        """
        duration = int(data.get("duration") or 0)
        if duration <= 0:
            raise ValueError(f"Invalid duration in stored timer: {data.get('duration')!r}")

        remaining = data.get("remainingTime")
        remaining = duration if remaining is None else int(remaining)
        created_at = data.get("createdAt")

        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or "Timer"),
            duration=duration,
            remaining=max(0, min(remaining, duration)),
            status=TimerStatus.parse(data.get("status")),
            completion=float(data.get("completion") or 0.0),
            metadata=dict(data.get("metadata") or {}),
            created_at=datetime.fromisoformat(created_at) if created_at else None,
        )

    def __repr__(self) -> str:
        """Readable representation for debugging."""
        return (
            f"TimerSnapshot(id={self.id!r}, name={self.name!r}, "
            f"remaining={self.remaining}/{self.duration}, status={self.status})"
        )
