"""UI coordination: render queue, rendering surfaces, notifications."""

from pysimmer.ui.notifier import LogNotifier, Notifier
from pysimmer.ui.render_queue import RenderQueue
from pysimmer.ui.view import RenderHandle, TextView, TimerView

__all__ = [
    "LogNotifier",
    "Notifier",
    "RenderHandle",
    "RenderQueue",
    "TextView",
    "TimerView",
]
