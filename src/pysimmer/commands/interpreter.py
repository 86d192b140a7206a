"""
Free-text command interpreter.

Turns one command string ("pause the pasta timer", "simmer the sauce for
10 minutes") into registry requests on the bus. Stages run in order and
the first one that recognizes the text ends processing:

1. Clean the text and reject echoes of the system's own voice output
2. Direct intent: a control verb followed by a target name
3. Creation: any text carrying a duration creates an auto-started timer
4. The pattern table, in registration order
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from pysimmer.bus import (
    CommandRequest,
    CreateTimerRequest,
    MessageBus,
    NameRequest,
    Topics,
    Unsubscribe,
)
from pysimmer.commands.patterns import CommandPattern, PatternAction
from pysimmer.commands.text import (
    clean_transcript,
    create_timer_label,
    extract_duration,
    find_duration_match,
    format_duration,
    generate_timer_name,
)
from pysimmer.config import DEFAULT_TIMER_NAME
from pysimmer.core.resolver import QUALIFIER, significant_words

logger = logging.getLogger(__name__)

ECHO_PHRASES = (
    "voice control activated",
    "voice control deactivated",
    "command not recognized",
    "not recognized",
)

ECHO_PATTERNS = (
    re.compile(r"\bhear(d|ing)?:?\s"),
    re.compile(r"^(command|voice)?\s?not\s(recognized|recognize)"),
)

DIRECT_INTENT = re.compile(
    r"^(start|pause|resume|stop|reset|restart|cancel|clear|remove|close)\s+"
    r"(?:the\s+)?(.+?)(?:\s+timers?)?$"
)

VERB_OPERATIONS = {
    "start": "start",
    "resume": "start",
    "pause": "pause",
    "stop": "pause",
    "reset": "reset",
    "restart": "reset",
    "cancel": "remove",
    "clear": "remove",
    "remove": "remove",
    "close": "remove",
}

BATCH_TARGETS = frozenset({"", "all", "all the", "every", "everything", QUALIFIER, f"{QUALIFIER}s"})


def is_echo(text: str) -> bool:
    """True when cleaned text is one of the system's own spoken responses."""
    if any(phrase in text for phrase in ECHO_PHRASES):
        return True
    return any(pattern.search(text) for pattern in ECHO_PATTERNS)


class CommandInterpreter:
    """Recognizes timer commands and publishes the matching requests.

    Example:
        ```python
        interpreter = CommandInterpreter(bus)
        interpreter.init()
        interpreter.process_command("pause the pasta timer")   # True
        interpreter.process_command("what's for dinner")       # False
        ```
    """

    def __init__(self, bus: MessageBus):
        self._bus = bus
        self._patterns: list[CommandPattern] = []
        self._unsubscribe: Unsubscribe | None = None
        self._install_builtin_patterns()

    @property
    def patterns(self) -> tuple[CommandPattern, ...]:
        return tuple(self._patterns)

    def init(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._bus.subscribe(Topics.COMMAND_PROCESS, self._on_command)

    def dispose(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def register_pattern(
        self, patterns: Iterable[str | re.Pattern] | str | re.Pattern, action: PatternAction
    ) -> CommandPattern:
        """
        Append a pattern to the table.

        Registered patterns are tried after the built-ins, in registration
        order. Text reaches the table only when no earlier stage
        recognized it.
        """
        if isinstance(patterns, str | re.Pattern):
            patterns = [patterns]
        entry = CommandPattern.of(patterns, action)
        self._patterns.append(entry)
        return entry

    def process_command(self, command: str | None) -> bool:
        """
        Interpret one command.

        Returns:
            True if any stage recognized the text
        """
        text = clean_transcript(command)
        if not text:
            return False
        if is_echo(text):
            logger.debug(f"Ignoring echo: {text!r}")
            return False

        if self._direct_intent(text):
            return True
        if self._create_from_text(text):
            return True

        for entry in self._patterns:
            match = entry.match(text)
            if match is None:
                continue
            try:
                entry.action(match)
            except Exception:
                logger.exception(f"Command action failed for {text!r}")
            return True

        logger.info(f"Command not recognized: {text!r}")
        return False

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _direct_intent(self, text: str) -> bool:
        match = DIRECT_INTENT.match(text)
        if match is None:
            return False

        verb, target = match.group(1), match.group(2).strip()
        # "start a timer for 5 minutes" is a creation phrase
        if find_duration_match(target) is not None:
            return False

        operation = VERB_OPERATIONS[verb]
        if target in BATCH_TARGETS:
            if operation == "remove":
                self._bus.publish(Topics.REQUEST_CLEAR)
            else:
                self._bus.publish(Topics.all(operation))
            logger.info(f"Command {text!r} -> {operation} all")
            return True

        logger.info(f"Command {text!r} -> {operation} {target!r}")
        if self._request_by_name(operation, target):
            return True

        words = significant_words(target)
        if len(target.split()) > 1 and words and words[0] != target:
            self._request_by_name(operation, words[0])
        return True

    def _request_by_name(self, operation: str, name: str) -> bool:
        """Publish a by-name request; True if the registry answered."""
        answered: list[str] = []
        unsubscribe = self._bus.subscribe(
            Topics.response(operation), lambda message: answered.append(message.id)
        )
        try:
            self._bus.publish(Topics.by_name(operation), NameRequest(name=name))
        finally:
            unsubscribe()
        return bool(answered)

    def _create_from_text(self, text: str) -> bool:
        # Every duration phrase counts; the first one anchors the name
        match = find_duration_match(text)
        duration = extract_duration(text)
        if match is None or duration <= 0:
            return False

        name = generate_timer_name(text, match.start)
        if name == DEFAULT_TIMER_NAME:
            name = create_timer_label(text)
        self._bus.publish(
            Topics.REQUEST_CREATE,
            CreateTimerRequest(
                name=name,
                duration=duration,
                auto_start=True,
                metadata={"sourceText": text, "matchIndex": match.start},
            ),
        )
        logger.info(f"Command {text!r} -> create {name!r} ({format_duration(duration)})")
        return True

    # ------------------------------------------------------------------
    # Built-in table
    # ------------------------------------------------------------------

    def _install_builtin_patterns(self) -> None:
        optional = r"(?:please\s+)?"
        tail = r"(?:\s+please)?$"
        for verbs, operation in (
            ("start|resume|begin", "start"),
            ("pause|stop|hold", "pause"),
            ("reset|restart", "reset"),
        ):
            self.register_pattern(
                [
                    rf"^{optional}(?:{verbs})\s+(?:all\s+)?(?:(?:of\s+)?the\s+)?timers?{tail}",
                    rf"^{optional}(?:{verbs})\s+(?:everything|all){tail}",
                ],
                self._publisher(Topics.all(operation)),
            )
        self.register_pattern(
            [
                rf"^{optional}(?:cancel|clear|remove|close|delete)\s+(?:all\s+)?(?:(?:of\s+)?the\s+)?timers?{tail}",
                rf"^{optional}(?:cancel|clear|remove|close|delete)\s+(?:everything|all){tail}",
            ],
            self._publisher(Topics.REQUEST_CLEAR),
        )
        self.register_pattern(
            [rf"^{optional}(?:list|show)(?:\s+me)?(?:\s+all)?(?:\s+(?:the|my))?\s+timers?{tail}"],
            self._publisher(Topics.REQUEST_GET_ALL),
        )

    def _publisher(self, topic: str) -> PatternAction:
        def action(match: re.Match) -> None:
            self._bus.publish(topic)

        return action

    def _on_command(self, message: CommandRequest) -> None:
        self.process_command(message.command)
