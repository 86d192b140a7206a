"""Message bus and the typed messages it carries.

Design: Publish/Subscribe
    Producers and consumers never call each other. Each topic carries one
    message type from ``pysimmer.bus.messages``; the bus validates at the
    publish boundary.
"""

from pysimmer.bus.bus import Handler, MessageBus, Unsubscribe
from pysimmer.bus.messages import (
    DEFAULT_SCHEMAS,
    AddMetadataRequest,
    CommandRequest,
    CompletionNotice,
    CountResponse,
    CreatedResponse,
    CreateTimerRequest,
    EmptyRequest,
    MalformedMessageError,
    Message,
    MessageError,
    MetadataAdded,
    NameRequest,
    OperationResponse,
    RegistryInitialized,
    RenameRequest,
    StepHighlighted,
    StepRequest,
    TimerEvent,
    TimerIdRequest,
    TimerRemoved,
    TimerRenamed,
    TimerResponse,
    TimersCleared,
    TimersLoaded,
    Topics,
)

__all__ = [
    "DEFAULT_SCHEMAS",
    "Handler",
    "MessageBus",
    "Unsubscribe",
    "AddMetadataRequest",
    "CommandRequest",
    "CompletionNotice",
    "CountResponse",
    "CreatedResponse",
    "CreateTimerRequest",
    "EmptyRequest",
    "MalformedMessageError",
    "Message",
    "MessageError",
    "MetadataAdded",
    "NameRequest",
    "OperationResponse",
    "RegistryInitialized",
    "RenameRequest",
    "StepHighlighted",
    "StepRequest",
    "TimerEvent",
    "TimerIdRequest",
    "TimerRemoved",
    "TimerRenamed",
    "TimerResponse",
    "TimersCleared",
    "TimersLoaded",
    "Topics",
]
