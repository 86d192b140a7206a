"""
Topic-based publish/subscribe bus.

The bus is the only coupling between the registry, the render queue and
the command interpreter. Dispatch is synchronous: ``publish`` returns
after every current subscriber of the topic has been called, in
subscription order.

Rules:
- Dispatch iterates a snapshot of the subscriber list. A subscription
  removed while a dispatch is running is skipped from that point on;
  subscriptions added during dispatch receive the next publish.
- A handler publishing further messages is plain recursion.
- A handler exception is logged and delivery continues.
- A handler returning an awaitable has it scheduled on the running loop.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Mapping
from typing import Any

from pysimmer.bus.messages import DEFAULT_SCHEMAS, MalformedMessageError, Message

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]
Unsubscribe = Callable[[], bool]


class _Subscription:
    __slots__ = ("topic", "handler", "active")

    def __init__(self, topic: str, handler: Handler):
        self.topic = topic
        self.handler = handler
        self.active = True


class MessageBus:
    """In-process message bus with typed topics.

    Usage:
        bus = MessageBus()
        unsubscribe = bus.subscribe(Topics.TICK, on_tick)
        bus.publish(Topics.TICK, TimerEvent(timer=snapshot))
        unsubscribe()

    Args:
        schemas: Topic -> message type table. Defaults to the full timer
            catalog; pass ``{}`` for an untyped bus.
    """

    def __init__(self, schemas: Mapping[str, type[Message]] | None = None):
        self._subscriptions: dict[str, list[_Subscription]] = {}
        self._schemas: dict[str, type[Message]] = dict(
            DEFAULT_SCHEMAS if schemas is None else schemas
        )
        self._background: set[asyncio.Task] = set()

    def __repr__(self) -> str:
        topics = sum(1 for subs in self._subscriptions.values() if subs)
        return f"MessageBus(topics={topics})"

    def register(self, topic: str, message_type: type[Message]) -> None:
        """Declare (or replace) the message type carried by topic."""
        self._schemas[topic] = message_type

    def schema(self, topic: str) -> type[Message] | None:
        return self._schemas.get(topic)

    def subscribe(self, topic: str, handler: Handler) -> Unsubscribe:
        """
        Register handler for topic.

        Returns:
            A function removing exactly this subscription; it returns False
            when called a second time.
        """
        subscription = _Subscription(topic, handler)
        self._subscriptions.setdefault(topic, []).append(subscription)
        return lambda: self._remove(subscription)

    def unsubscribe(self, topic: str, handler: Handler) -> bool:
        """Remove the first subscription of handler on topic."""
        for subscription in self._subscriptions.get(topic, []):
            if subscription.handler == handler:
                return self._remove(subscription)
        return False

    def _remove(self, subscription: _Subscription) -> bool:
        if not subscription.active:
            return False
        subscription.active = False
        # Rebind instead of mutating: in-flight dispatches hold the old list
        remaining = [s for s in self._subscriptions.get(subscription.topic, []) if s is not subscription]
        if remaining:
            self._subscriptions[subscription.topic] = remaining
        else:
            self._subscriptions.pop(subscription.topic, None)
        return True

    def has_subscribers(self, topic: str) -> bool:
        return bool(self._subscriptions.get(topic))

    def clear(self, topic: str | None = None) -> None:
        """Drop subscriptions for one topic, or for every topic."""
        if topic is None:
            topics = list(self._subscriptions)
        else:
            topics = [topic]
        for name in topics:
            for subscription in self._subscriptions.pop(name, []):
                subscription.active = False

    def publish(self, topic: str, payload: Any = None) -> None:
        """
        Deliver payload to every subscriber of topic.

        Payloads for registered topics are validated first: a mapping is
        coerced into the topic's message type, and one that cannot be is
        logged and dropped.

        Raises:
            TypeError: If payload is a message of the wrong type for topic
        """
        message = self._validate(topic, payload)
        if message is _DROPPED:
            return

        subscriptions = self._subscriptions.get(topic)
        if not subscriptions:
            logger.debug(f"No subscribers for {topic}")
            return

        for subscription in tuple(subscriptions):
            if not subscription.active:
                continue
            try:
                result = subscription.handler(message)
            except Exception:
                logger.exception(f"Handler {_name(subscription.handler)} failed on {topic}")
                continue
            if inspect.isawaitable(result):
                self._spawn(topic, subscription.handler, result)

    def _validate(self, topic: str, payload: Any) -> Any:
        message_type = self._schemas.get(topic)
        if message_type is None:
            return payload
        if isinstance(payload, message_type):
            return payload
        if isinstance(payload, Message):
            raise TypeError(
                f"{topic} carries {message_type.__name__}, got {type(payload).__name__}"
            )
        try:
            return message_type.from_payload(payload)
        except MalformedMessageError as e:
            logger.warning(f"Dropping malformed message on {topic}: {e}")
            return _DROPPED

    def _spawn(self, topic: str, handler: Handler, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error(f"Handler {_name(handler)} on {topic} returned an awaitable outside a loop")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        task = loop.create_task(_guard(topic, handler, awaitable))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        """Wait for handler tasks spawned by async subscribers."""
        while self._background:
            await asyncio.gather(*tuple(self._background), return_exceptions=True)


_DROPPED = object()


async def _guard(topic: str, handler: Handler, awaitable: Any) -> None:
    try:
        await awaitable
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception(f"Async handler {_name(handler)} failed on {topic}")


def _name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", repr(handler))
