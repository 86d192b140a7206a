"""
Rendering surfaces for timers.

TimerView is the abstract surface the render queue draws on. A real
front end (terminal UI, web socket push, GUI) adapts to it; TextView is
the built-in in-memory panel used by default and in tests.

Design Pattern: Adapter Pattern
    The render queue depends on TimerView only; it never knows what a
    "container" actually is.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any

from pysimmer.commands.text import calculate_completion, format_time_mmss
from pysimmer.models import TimerSnapshot, TimerStatus


@dataclass
class RenderHandle:
    """
    UI handles for one rendered timer.

    Attributes:
        timer_id: Timer the handles belong to
        container: Top-level element, checked for attachment
        name_element: Element showing the name
        time_display: Element showing the remaining time
    """

    timer_id: str
    container: Any
    name_element: Any = None
    time_display: Any = None


class TimerView(ABC):
    """Abstract rendering surface."""

    @abstractmethod
    async def create_element(self, timer: TimerSnapshot) -> RenderHandle:
        """Materialize a timer and return its handles."""
        pass

    @abstractmethod
    async def update_element(self, handle: RenderHandle, timer: TimerSnapshot) -> None:
        """Refresh an existing element from a newer snapshot."""
        pass

    @abstractmethod
    async def remove_element(self, handle: RenderHandle) -> None:
        pass

    @abstractmethod
    def is_attached(self, handle: RenderHandle) -> bool:
        """
        Check the handle's container is still part of the surface.

        False means the element was torn down behind the queue's back and
        the handle is stale.
        """
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove every element."""
        pass

    def set_current_step(self, step_id: Any) -> None:
        """Mark the workflow step currently shown. Optional."""
        return None


@dataclass
class _Cell:
    text: str = ""


@dataclass
class _Row:
    timer_id: str
    name: _Cell = field(default_factory=_Cell)
    time: _Cell = field(default_factory=_Cell)
    progress: int = 0
    status: TimerStatus = TimerStatus.IDLE
    step_id: Any = None
    phase_step: Any = None


class TextView(TimerView):
    """
    In-memory text panel.

    Each timer is one row:

        Pasta boil timer         09:58   0%  running   [Step 3 •]

    ``render()`` returns the whole panel as text. ``detach()`` drops a row
    without going through the render queue, as an external teardown would.
    """

    def __init__(self, name_width: int = 24):
        self._rows: OrderedDict[str, _Row] = OrderedDict()
        self._current_step: str | None = None
        self._name_width = name_width
        self.created = 0
        self.updated = 0
        self.removed = 0

    def __repr__(self) -> str:
        return f"TextView(rows={len(self._rows)})"

    def __len__(self) -> int:
        return len(self._rows)

    async def create_element(self, timer: TimerSnapshot) -> RenderHandle:
        row = _Row(timer_id=timer.id)
        self._fill(row, timer)
        self._rows[timer.id] = row
        self.created += 1
        return RenderHandle(timer.id, container=row, name_element=row.name, time_display=row.time)

    async def update_element(self, handle: RenderHandle, timer: TimerSnapshot) -> None:
        self._fill(handle.container, timer)
        self.updated += 1

    async def remove_element(self, handle: RenderHandle) -> None:
        if self._rows.get(handle.timer_id) is handle.container:
            del self._rows[handle.timer_id]
            self.removed += 1

    def is_attached(self, handle: RenderHandle) -> bool:
        return self._rows.get(handle.timer_id) is handle.container

    async def clear(self) -> None:
        self._rows.clear()

    def set_current_step(self, step_id: Any) -> None:
        self._current_step = None if step_id is None else str(step_id)

    def detach(self, timer_id: str) -> None:
        """Drop a row without telling the render queue."""
        self._rows.pop(timer_id, None)

    def row_text(self, timer_id: str) -> str | None:
        row = self._rows.get(timer_id)
        return None if row is None else self._format(row)

    def render(self) -> str:
        return "\n".join(self._format(row) for row in self._rows.values())

    def _fill(self, row: _Row, timer: TimerSnapshot) -> None:
        row.name.text = timer.name
        row.time.text = format_time_mmss(timer.remaining)
        row.progress = calculate_completion(timer.duration, timer.remaining)
        row.status = timer.status
        row.step_id = timer.metadata.get("stepId")
        row.phase_step = timer.metadata.get("phaseStepNumber")

    def _format(self, row: _Row) -> str:
        line = (
            f"{row.name.text:<{self._name_width}} {row.time.text} {row.progress:>3}%  "
            f"{row.status.value:<9}"
        )
        if row.step_id is not None:
            indicator = f"Step {row.phase_step if row.phase_step is not None else '?'}"
            if self._current_step is not None and str(row.step_id) == self._current_step:
                indicator += " •"
            line += f" [{indicator}]"
        return line.rstrip()
