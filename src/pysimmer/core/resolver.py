"""
Fuzzy timer name resolution.

Maps an imprecise (often spoken) timer name onto one timer id. Strategies
are tried in order and the first hit of the first successful strategy
wins; within a strategy, timers are visited in registry insertion order.

1. Exact, case-insensitive name match
2. Name with the trailing qualifier word ("timer") added or removed
3. Keyword containment: a significant query word found inside the name
4. Bidirectional substring containment between query and name
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Protocol

QUALIFIER = "timer"

MIN_KEYWORD_LENGTH = 3

STOP_WORDS = frozenset(
    {"the", "and", "for", "all", "timer", "timers", "please", "that", "this", "with", "my"}
)


class Named(Protocol):
    id: str
    name: str


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", text.strip().lower())


def _toggle_qualifier(query: str) -> str:
    suffix = f" {QUALIFIER}"
    if query.endswith(suffix):
        return query[: -len(suffix)].strip()
    return query + suffix


def significant_words(query: str) -> list[str]:
    """Words of query long enough to identify a timer, stop words removed."""
    return [
        word
        for word in re.split(r"\s+", _normalize(query))
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOP_WORDS
    ]


def resolve_timer_name(query: str, timers: Iterable[Named]) -> str | None:
    """
    Find the id of the timer best matching query.

    Args:
        query: Name as typed or heard
        timers: Timers (or snapshots) in registry order

    Returns:
        The matching id, or None if no strategy matched

    Example:
        resolve_timer_name("pasta", [Timer("Pasta boil timer", 600)])  # -> that id
    """
    wanted = _normalize(query or "")
    if not wanted:
        return None

    candidates = [(timer.id, _normalize(timer.name)) for timer in timers]
    if not candidates:
        return None

    for timer_id, name in candidates:
        if name == wanted:
            return timer_id

    toggled = _toggle_qualifier(wanted)
    if toggled:
        for timer_id, name in candidates:
            if name == toggled:
                return timer_id

    for word in significant_words(wanted):
        for timer_id, name in candidates:
            if word in name:
                return timer_id

    # Very short queries would match nearly any name
    if len(wanted) >= MIN_KEYWORD_LENGTH:
        for timer_id, name in candidates:
            if name and (wanted in name or name in wanted):
                return timer_id

    return None
