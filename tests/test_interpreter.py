"""Tests for the free-text command interpreter."""

import pytest

from conftest import wait_for
from pysimmer.bus import MessageBus, Topics
from pysimmer.commands import CommandInterpreter, is_echo
from pysimmer.core import TimerRegistry
from pysimmer.models import TimerStatus


@pytest.fixture
def interpreter(bus: MessageBus):
    interpreter = CommandInterpreter(bus)
    interpreter.init()
    yield interpreter
    interpreter.dispose()


@pytest.mark.parametrize(
    "text",
    [
        "Voice control activated",
        "voice control deactivated",
        "Command not recognized",
        "not recognized: start pasta",
        "heard: start the pasta timer",
        "I'm hearing start pasta",
    ],
)
def test_echo_phrases_are_rejected(text, interpreter: CommandInterpreter, record):
    recorder = record(Topics.REQUEST_CREATE, Topics.REQUEST_START_BY_NAME)

    assert interpreter.process_command(text) is False
    assert recorder.messages == []


def test_is_echo_leaves_real_commands_alone():
    assert not is_echo("start the pasta timer")
    assert is_echo("heard start pasta")


def test_empty_and_unmatched_text(interpreter: CommandInterpreter):
    assert interpreter.process_command("") is False
    assert interpreter.process_command("   ") is False
    assert interpreter.process_command(None) is False
    assert interpreter.process_command("what's for dinner") is False


@pytest.mark.asyncio
async def test_set_a_timer_creates_auto_started_timer(
    registry: TimerRegistry, interpreter: CommandInterpreter, record
):
    recorder = record(Topics.REQUEST_CREATE, Topics.STARTED)

    assert interpreter.process_command("Set a timer for 5 minutes") is True

    request = recorder.on(Topics.REQUEST_CREATE)[0]
    assert request.duration == 300
    assert request.auto_start is True
    assert request.metadata["sourceText"] == "set a timer for 5 minutes"
    assert request.metadata["matchIndex"] == 16
    timer = registry.get_all()[0]
    assert timer.duration == 300
    await wait_for(lambda: recorder.on(Topics.STARTED))
    assert timer.status == TimerStatus.RUNNING


@pytest.mark.asyncio
async def test_creation_sums_every_duration_phrase(
    registry: TimerRegistry, interpreter: CommandInterpreter, record
):
    recorder = record(Topics.REQUEST_CREATE)

    assert interpreter.process_command("set a timer for 1 hour 30 minutes") is True

    request = recorder.on(Topics.REQUEST_CREATE)[0]
    assert request.duration == 5400
    assert request.metadata["matchIndex"] == 16
    assert registry.get_all()[0].duration == 5400


@pytest.mark.asyncio
async def test_creation_names_timer_from_context(
    registry: TimerRegistry, interpreter: CommandInterpreter
):
    interpreter.process_command("simmer the sauce for 10-15 minutes")

    timer = registry.get_all()[0]
    assert (timer.name, timer.duration) == ("Simmer sauce", 900)


@pytest.mark.asyncio
async def test_start_verb_with_duration_is_a_creation(
    registry: TimerRegistry, interpreter: CommandInterpreter, record
):
    recorder = record(Topics.REQUEST_START_BY_NAME, Topics.REQUEST_CREATE)

    assert interpreter.process_command("start a timer for 2 minutes") is True

    assert recorder.on(Topics.REQUEST_START_BY_NAME) == []
    assert recorder.on(Topics.REQUEST_CREATE)[0].duration == 120


@pytest.mark.asyncio
async def test_direct_intent_controls_named_timer(
    registry: TimerRegistry, interpreter: CommandInterpreter, record
):
    recorder = record(Topics.REQUEST_PAUSE_BY_NAME)
    timer_id = registry.create(name="Pasta boil timer", duration=600)
    registry.start(timer_id)

    assert interpreter.process_command("pause the pasta timer") is True

    assert [r.name for r in recorder.on(Topics.REQUEST_PAUSE_BY_NAME)] == ["pasta"]
    assert registry.get(timer_id).status == TimerStatus.PAUSED


@pytest.mark.asyncio
async def test_verb_synonyms(registry: TimerRegistry, interpreter: CommandInterpreter):
    timer_id = registry.create(name="Rice", duration=600)

    interpreter.process_command("resume rice")
    assert registry.get(timer_id).is_running
    interpreter.process_command("stop the rice timer")
    assert registry.get(timer_id).is_paused
    interpreter.process_command("restart rice")
    assert registry.get(timer_id).status == TimerStatus.IDLE
    interpreter.process_command("close rice timer")
    assert timer_id not in registry


@pytest.mark.asyncio
async def test_unresolved_phrase_retries_with_single_word(
    registry: TimerRegistry, interpreter: CommandInterpreter, record
):
    recorder = record(Topics.REQUEST_REMOVE_BY_NAME)

    assert interpreter.process_command("remove the purple carrot timer") is True

    assert [r.name for r in recorder.on(Topics.REQUEST_REMOVE_BY_NAME)] == [
        "purple carrot",
        "purple",
    ]


@pytest.mark.asyncio
async def test_resolved_phrase_is_not_retried(
    registry: TimerRegistry, interpreter: CommandInterpreter, record
):
    recorder = record(Topics.REQUEST_START_BY_NAME)
    registry.create(name="Roast chicken", duration=600)

    interpreter.process_command("start roast chicken")

    assert len(recorder.on(Topics.REQUEST_START_BY_NAME)) == 1


@pytest.mark.parametrize(
    "text, topic",
    [
        ("start timer", Topics.REQUEST_START_ALL),
        ("stop all timers", Topics.REQUEST_PAUSE_ALL),
        ("reset the timers", Topics.REQUEST_RESET_ALL),
        ("cancel all", Topics.REQUEST_CLEAR),
        ("clear timers", Topics.REQUEST_CLEAR),
        ("please start all the timers", Topics.REQUEST_START_ALL),
        ("please pause everything", Topics.REQUEST_PAUSE_ALL),
        ("delete all timers please", Topics.REQUEST_CLEAR),
        ("show my timers", Topics.REQUEST_GET_ALL),
        ("list timers", Topics.REQUEST_GET_ALL),
    ],
)
def test_batch_and_table_commands(text, topic, interpreter: CommandInterpreter, record):
    recorder = record(topic)

    assert interpreter.process_command(text) is True
    assert len(recorder.on(topic)) == 1


def test_registered_pattern_runs_after_builtins(interpreter: CommandInterpreter):
    matches = []
    interpreter.register_pattern(r"^ding(?: ding)?$", lambda match: matches.append(match.group(0)))

    assert interpreter.process_command("Ding ding") is True
    assert matches == ["ding ding"]
    assert interpreter.patterns[-1].match("ding")


def test_failing_action_is_logged(interpreter: CommandInterpreter, caplog):
    def explode(match):
        raise RuntimeError("no bell")

    interpreter.register_pattern("^ring the bell$", explode)

    assert interpreter.process_command("ring the bell") is True
    assert "Command action failed" in caplog.text


@pytest.mark.asyncio
async def test_command_topic_reaches_interpreter(
    registry: TimerRegistry, interpreter: CommandInterpreter, bus: MessageBus
):
    bus.publish(Topics.COMMAND_PROCESS, {"command": "boil eggs for 8 minutes"})

    timer = registry.get_all()[0]
    assert (timer.name, timer.duration) == ("Boil eggs", 480)


def test_dispose_unsubscribes(bus: MessageBus):
    interpreter = CommandInterpreter(bus)
    interpreter.init()
    interpreter.dispose()

    assert not bus.has_subscribers(Topics.COMMAND_PROCESS)
