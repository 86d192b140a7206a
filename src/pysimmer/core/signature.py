"""
Duplicate-detection signatures for step-bound timers.

The surrounding workflow may ask for the timers of one step several
times (re-navigation, re-render). A timer created from a step is
identified by where its duration was found in the step text:

    "{stepId}-{source}-{bulletIndex}-{matchIndex}-{duration}"

Two create requests with the same signature under the same step key
produce one timer. The canonical string is hashed with xxh64 so the
per-step sets stay small.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import xxhash

from pysimmer.core.errors import SignatureError

REQUIRED_FIELDS = ("source", "matchIndex")


@dataclass(frozen=True)
class TimerSignature:
    step_key: str
    canonical: str

    @property
    def digest(self) -> int:
        return xxhash.xxh64(self.canonical.encode("utf-8")).intdigest() & 0x7FFFFFFFFFFFFFFF


def step_key_for(step_id: Any) -> str:
    return f"step-{step_id}"


def timer_signature(metadata: Mapping[str, Any], duration: int) -> TimerSignature | None:
    """
    Compute the signature of a step-bound timer.

    Returns:
        None when metadata carries no ``stepId`` (free-standing timer)

    Raises:
        SignatureError: If ``stepId`` is present but ``source`` or
            ``matchIndex`` is missing
    """
    step_id = metadata.get("stepId")
    if step_id is None:
        return None

    missing = [name for name in REQUIRED_FIELDS if metadata.get(name) is None]
    if missing:
        raise SignatureError(
            f"Timer metadata for step {step_id!r} is missing {', '.join(missing)}"
        )

    bullet_index = metadata.get("bulletIndex")
    if bullet_index is None:
        bullet_index = -1

    canonical = f"{step_id}-{metadata['source']}-{bullet_index}-{metadata['matchIndex']}-{duration}"
    return TimerSignature(step_key=step_key_for(step_id), canonical=canonical)
