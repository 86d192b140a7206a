"""Regular-expression command table entries."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

PatternAction = Callable[[re.Match], None]


def _compile(pattern: str | re.Pattern) -> re.Pattern:
    if isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern, re.IGNORECASE)


@dataclass(frozen=True)
class CommandPattern:
    """
    One or more phrasings sharing an action.

    Phrasings are tried in order; the action receives the first match.

    Example:
        CommandPattern.of(
            [r"^(?:show|list)(?: all)?(?: the)? timers$"],
            lambda match: bus.publish(Topics.REQUEST_GET_ALL),
        )
    """

    patterns: tuple[re.Pattern, ...]
    action: PatternAction

    @classmethod
    def of(cls, patterns: Iterable[str | re.Pattern], action: PatternAction) -> CommandPattern:
        compiled = tuple(_compile(pattern) for pattern in patterns)
        if not compiled:
            raise ValueError("CommandPattern needs at least one pattern")
        return cls(patterns=compiled, action=action)

    def match(self, text: str) -> re.Match | None:
        for pattern in self.patterns:
            found = pattern.search(text)
            if found:
                return found
        return None
