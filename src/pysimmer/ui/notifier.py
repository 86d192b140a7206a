"""Completion notification side channel."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque

from pysimmer.bus import CompletionNotice

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Fires the user-facing signal when a timer completes (sound, speech, toast)."""

    @abstractmethod
    async def timer_complete(self, notice: CompletionNotice) -> None:
        pass


class LogNotifier(Notifier):
    """Default notifier: logs the completion and keeps the latest notices.

    Args:
        history: How many notices to retain
    """

    def __init__(self, history: int = 50):
        self.notices: deque[CompletionNotice] = deque(maxlen=history)

    async def timer_complete(self, notice: CompletionNotice) -> None:
        self.notices.append(notice)
        suffix = " (sound)" if notice.play_sound else ""
        logger.info(f'Timer "{notice.name}" has completed!{suffix}')
