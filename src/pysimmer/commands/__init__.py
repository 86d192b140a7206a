"""Free-text commands and the text heuristics behind them."""

from pysimmer.commands.interpreter import CommandInterpreter, is_echo
from pysimmer.commands.patterns import CommandPattern
from pysimmer.commands.text import (
    DurationMatch,
    StepTimer,
    calculate_completion,
    clean_transcript,
    create_step_key,
    create_step_timer_key,
    create_timer_label,
    extract_duration,
    find_duration_match,
    find_timers_in_step,
    format_duration,
    format_time_mmss,
    generate_timer_name,
)
from pysimmer.core.resolver import resolve_timer_name

__all__ = [
    "CommandInterpreter",
    "CommandPattern",
    "DurationMatch",
    "StepTimer",
    "calculate_completion",
    "clean_transcript",
    "create_step_key",
    "create_step_timer_key",
    "create_timer_label",
    "extract_duration",
    "find_duration_match",
    "find_timers_in_step",
    "format_duration",
    "format_time_mmss",
    "generate_timer_name",
    "is_echo",
    "resolve_timer_name",
]
