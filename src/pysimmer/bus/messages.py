"""
Message variants carried by the bus.

Every registered topic maps to exactly one frozen dataclass. Publishers
may pass either an instance or a plain mapping; mappings are coerced at
the publish boundary via ``from_payload`` so subscribers always receive a
typed message and can pattern-match on it:

    match message:
        case TimerEvent(timer=timer):
            ...
        case TimerRemoved(id=timer_id):
            ...

Mapping keys are accepted in both ``snake_case`` and the ``camelCase``
used by the persisted format (``autoStart``, ``requestId``, ``stepId``).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import MISSING, dataclass, field, fields
from types import MappingProxyType
from typing import Any, ClassVar

from pysimmer.models import TimerSnapshot

__all__ = [
    "MessageError",
    "MalformedMessageError",
    "Message",
    "CreateTimerRequest",
    "TimerIdRequest",
    "RenameRequest",
    "AddMetadataRequest",
    "NameRequest",
    "EmptyRequest",
    "StepRequest",
    "CommandRequest",
    "CreatedResponse",
    "OperationResponse",
    "CountResponse",
    "TimerResponse",
    "TimerEvent",
    "TimerRemoved",
    "TimerRenamed",
    "MetadataAdded",
    "TimersLoaded",
    "TimersCleared",
    "RegistryInitialized",
    "CompletionNotice",
    "StepHighlighted",
    "Topics",
    "DEFAULT_SCHEMAS",
]


class MessageError(Exception):
    """Base class for bus message errors."""

    pass


class MalformedMessageError(MessageError):
    """A payload cannot be coerced into the message type of its topic."""

    pass


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _require_id(value: Any, what: str = "id") -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{what} must be a non-empty string, got {value!r}")
    return value


def _freeze(mapping: Any, what: str) -> Mapping[str, Any]:
    if mapping is None:
        return MappingProxyType({})
    if not isinstance(mapping, Mapping):
        raise ValueError(f"{what} must be a mapping, got {type(mapping).__name__}")
    return MappingProxyType(dict(mapping))


def _snapshot(value: Any) -> TimerSnapshot:
    if isinstance(value, TimerSnapshot):
        return value
    if isinstance(value, Mapping):
        return TimerSnapshot.from_dict(value)
    raise ValueError(f"timer must be a snapshot, got {type(value).__name__}")


class Message:
    """Base class for all bus payloads."""

    @classmethod
    def from_payload(cls, payload: Any) -> Message:
        """
        Coerce a raw mapping (or None) into this message type.

        Raises:
            MalformedMessageError: If a required field is missing or a value
                fails validation
        """
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise MalformedMessageError(
                f"{cls.__name__} expects a mapping, got {type(payload).__name__}"
            )

        kwargs: dict[str, Any] = {}
        for f in fields(cls):  # type: ignore[arg-type]
            if f.name in payload:
                kwargs[f.name] = payload[f.name]
            elif _camel(f.name) in payload:
                kwargs[f.name] = payload[_camel(f.name)]
            elif f.default is MISSING and f.default_factory is MISSING:
                raise MalformedMessageError(f"{cls.__name__} missing field {f.name!r}")

        try:
            return cls(**kwargs)
        except (TypeError, ValueError, KeyError) as e:
            raise MalformedMessageError(f"{cls.__name__}: {e}") from e


# =============================================================================
# Requests
# =============================================================================


@dataclass(frozen=True)
class CreateTimerRequest(Message):
    """
    Ask the registry to create a timer.

    ``duration`` is kept as given (None or 0 means "use the default");
    negative values are rejected by the registry, not here.
    """

    name: str | None = None
    duration: int | None = None
    auto_start: bool = False
    metadata: Mapping[str, Any] = field(default_factory=dict)
    request_id: str | None = None

    def __post_init__(self) -> None:
        if self.name is not None and not isinstance(self.name, str):
            raise ValueError(f"name must be a string, got {type(self.name).__name__}")
        if self.duration is not None:
            if isinstance(self.duration, bool):
                raise ValueError("duration must be a number")
            object.__setattr__(self, "duration", int(self.duration))
        object.__setattr__(self, "auto_start", bool(self.auto_start))
        object.__setattr__(self, "metadata", _freeze(self.metadata, "metadata"))


@dataclass(frozen=True)
class TimerIdRequest(Message):
    """Control request addressed to one timer (start, pause, reset, remove, get)."""

    id: str

    def __post_init__(self) -> None:
        _require_id(self.id)


@dataclass(frozen=True)
class RenameRequest(Message):
    id: str
    name: str

    def __post_init__(self) -> None:
        _require_id(self.id)
        _require_id(self.name, "name")


@dataclass(frozen=True)
class AddMetadataRequest(Message):
    id: str
    metadata: Mapping[str, Any]

    def __post_init__(self) -> None:
        _require_id(self.id)
        object.__setattr__(self, "metadata", _freeze(self.metadata, "metadata"))


@dataclass(frozen=True)
class NameRequest(Message):
    """Control request addressed by spoken or typed timer name."""

    name: str

    def __post_init__(self) -> None:
        _require_id(self.name, "name")


@dataclass(frozen=True)
class EmptyRequest(Message):
    """Request with no arguments (getAll, clear, batch operations)."""

    pass


@dataclass(frozen=True)
class StepRequest(Message):
    step_id: Any

    def __post_init__(self) -> None:
        if self.step_id is None:
            raise ValueError("step_id is required")


@dataclass(frozen=True)
class CommandRequest(Message):
    """Free-text command for the interpreter."""

    command: str

    def __post_init__(self) -> None:
        if not isinstance(self.command, str):
            raise ValueError(f"command must be a string, got {type(self.command).__name__}")


# =============================================================================
# Responses
# =============================================================================


@dataclass(frozen=True)
class CreatedResponse(Message):
    """Answer to a create request. ``id`` is None when nothing was created."""

    id: str | None = None
    request_id: str | None = None


@dataclass(frozen=True)
class OperationResponse(Message):
    id: str
    success: bool

    def __post_init__(self) -> None:
        object.__setattr__(self, "success", bool(self.success))


@dataclass(frozen=True)
class CountResponse(Message):
    count: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "count", int(self.count))


@dataclass(frozen=True)
class TimerResponse(Message):
    id: str
    timer: TimerSnapshot | None = None

    def __post_init__(self) -> None:
        if self.timer is not None:
            object.__setattr__(self, "timer", _snapshot(self.timer))


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class TimerEvent(Message):
    """Lifecycle or tick event carrying the timer's current snapshot."""

    timer: TimerSnapshot

    def __post_init__(self) -> None:
        object.__setattr__(self, "timer", _snapshot(self.timer))

    @property
    def id(self) -> str:
        return self.timer.id


@dataclass(frozen=True)
class TimerRemoved(Message):
    id: str

    def __post_init__(self) -> None:
        _require_id(self.id)


@dataclass(frozen=True)
class TimerRenamed(Message):
    id: str
    name: str


@dataclass(frozen=True)
class MetadataAdded(Message):
    id: str
    metadata: Mapping[str, Any]

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", _freeze(self.metadata, "metadata"))


@dataclass(frozen=True)
class TimersLoaded(Message):
    timers: tuple[TimerSnapshot, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "timers", tuple(_snapshot(t) for t in self.timers))


@dataclass(frozen=True)
class TimersCleared(Message):
    pass


@dataclass(frozen=True)
class RegistryInitialized(Message):
    count: int = 0


@dataclass(frozen=True)
class CompletionNotice(Message):
    """Side-channel request to fire a completion notification (sound, speech)."""

    id: str
    name: str
    play_sound: bool = True


@dataclass(frozen=True)
class StepHighlighted(Message):
    step_id: Any
    timers: tuple[TimerSnapshot, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "timers", tuple(_snapshot(t) for t in self.timers))


# =============================================================================
# Topic catalog
# =============================================================================


class Topics:
    """Topic names used between the registry, render queue and interpreter."""

    # Requests
    REQUEST_CREATE = "timer:request:create"
    REQUEST_START = "timer:request:start"
    REQUEST_PAUSE = "timer:request:pause"
    REQUEST_RESET = "timer:request:reset"
    REQUEST_REMOVE = "timer:request:remove"
    REQUEST_RENAME = "timer:request:rename"
    REQUEST_ADD_METADATA = "timer:request:addMetadata"
    REQUEST_GET = "timer:request:get"
    REQUEST_GET_ALL = "timer:request:getAll"
    REQUEST_CLEAR = "timer:request:clear"
    REQUEST_START_ALL = "timer:request:start:all"
    REQUEST_PAUSE_ALL = "timer:request:pause:all"
    REQUEST_RESET_ALL = "timer:request:reset:all"
    REQUEST_START_BY_NAME = "timer:request:start:byName"
    REQUEST_PAUSE_BY_NAME = "timer:request:pause:byName"
    REQUEST_RESET_BY_NAME = "timer:request:reset:byName"
    REQUEST_REMOVE_BY_NAME = "timer:request:remove:byName"
    REQUEST_HIGHLIGHT_STEP = "timer:request:highlightStep"
    REQUEST_STEPS_CLEAR = "timer:request:steps:clear"
    COMMAND_PROCESS = "timer:command:process"

    # Responses
    CREATED_RESPONSE = "timer:created:response"
    START_RESPONSE = "timer:start:response"
    PAUSE_RESPONSE = "timer:pause:response"
    RESET_RESPONSE = "timer:reset:response"
    REMOVE_RESPONSE = "timer:remove:response"
    RENAME_RESPONSE = "timer:rename:response"
    ADD_METADATA_RESPONSE = "timer:addMetadata:response"
    GET_RESPONSE = "timer:get:response"
    START_ALL_RESPONSE = "timer:start:all:response"
    PAUSE_ALL_RESPONSE = "timer:pause:all:response"
    RESET_ALL_RESPONSE = "timer:reset:all:response"

    # Events
    CREATED = "timer:created"
    STARTED = "timer:started"
    PAUSED = "timer:paused"
    RESET = "timer:reset"
    REMOVED = "timer:removed"
    RENAMED = "timer:renamed"
    UPDATED = "timer:updated"
    METADATA_ADDED = "timer:metadata:added"
    TICK = "timer:tick"
    COMPLETED = "timer:completed"
    NOTIFY_COMPLETE = "timer:notify:complete"
    HIGHLIGHT_STEP = "timer:highlight:step"
    INITIALIZED = "timer:initialized"
    LOADED = "timers:loaded"
    CLEARED = "timers:cleared"

    # Workflow
    STEP_CHANGED = "step:changed"

    CONTROL_OPS: ClassVar[tuple[str, ...]] = ("start", "pause", "reset", "remove")
    BATCH_OPS: ClassVar[tuple[str, ...]] = ("start", "pause", "reset")

    @staticmethod
    def request(op: str) -> str:
        """Request topic for a single-timer operation, e.g. ``timer:request:start``."""
        return f"timer:request:{op}"

    @staticmethod
    def response(op: str) -> str:
        """Response topic for an operation, e.g. ``timer:start:response``."""
        return f"timer:{op}:response"

    @staticmethod
    def by_name(op: str) -> str:
        return f"timer:request:{op}:byName"

    @staticmethod
    def all(op: str) -> str:
        return f"timer:request:{op}:all"

    @staticmethod
    def all_response(op: str) -> str:
        return f"timer:{op}:all:response"


DEFAULT_SCHEMAS: dict[str, type[Message]] = {
    Topics.REQUEST_CREATE: CreateTimerRequest,
    Topics.REQUEST_START: TimerIdRequest,
    Topics.REQUEST_PAUSE: TimerIdRequest,
    Topics.REQUEST_RESET: TimerIdRequest,
    Topics.REQUEST_REMOVE: TimerIdRequest,
    Topics.REQUEST_RENAME: RenameRequest,
    Topics.REQUEST_ADD_METADATA: AddMetadataRequest,
    Topics.REQUEST_GET: TimerIdRequest,
    Topics.REQUEST_GET_ALL: EmptyRequest,
    Topics.REQUEST_CLEAR: EmptyRequest,
    Topics.REQUEST_START_ALL: EmptyRequest,
    Topics.REQUEST_PAUSE_ALL: EmptyRequest,
    Topics.REQUEST_RESET_ALL: EmptyRequest,
    Topics.REQUEST_START_BY_NAME: NameRequest,
    Topics.REQUEST_PAUSE_BY_NAME: NameRequest,
    Topics.REQUEST_RESET_BY_NAME: NameRequest,
    Topics.REQUEST_REMOVE_BY_NAME: NameRequest,
    Topics.REQUEST_HIGHLIGHT_STEP: StepRequest,
    Topics.REQUEST_STEPS_CLEAR: EmptyRequest,
    Topics.COMMAND_PROCESS: CommandRequest,
    Topics.CREATED_RESPONSE: CreatedResponse,
    Topics.START_RESPONSE: OperationResponse,
    Topics.PAUSE_RESPONSE: OperationResponse,
    Topics.RESET_RESPONSE: OperationResponse,
    Topics.REMOVE_RESPONSE: OperationResponse,
    Topics.RENAME_RESPONSE: OperationResponse,
    Topics.ADD_METADATA_RESPONSE: OperationResponse,
    Topics.GET_RESPONSE: TimerResponse,
    Topics.START_ALL_RESPONSE: CountResponse,
    Topics.PAUSE_ALL_RESPONSE: CountResponse,
    Topics.RESET_ALL_RESPONSE: CountResponse,
    Topics.CREATED: TimerEvent,
    Topics.STARTED: TimerEvent,
    Topics.PAUSED: TimerEvent,
    Topics.RESET: TimerEvent,
    Topics.UPDATED: TimerEvent,
    Topics.TICK: TimerEvent,
    Topics.COMPLETED: TimerEvent,
    Topics.REMOVED: TimerRemoved,
    Topics.RENAMED: TimerRenamed,
    Topics.METADATA_ADDED: MetadataAdded,
    Topics.NOTIFY_COMPLETE: CompletionNotice,
    Topics.HIGHLIGHT_STEP: StepHighlighted,
    Topics.INITIALIZED: RegistryInitialized,
    Topics.LOADED: TimersLoaded,
    Topics.CLEARED: TimersCleared,
    Topics.STEP_CHANGED: StepRequest,
}
"""Topic -> message type table installed on a default MessageBus."""
