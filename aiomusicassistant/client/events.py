"""Routing of server events to typed subscriber topics."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Generic, TypeVar

from mashumaro.exceptions import InvalidFieldValue, MissingField

from aiomusicassistant.models.events import (
    BuiltinPlayerEvent,
    MediaItemEvent,
    PlayerUpdateEvent,
    QueueUpdateEvent,
)
from aiomusicassistant.models.messages import EventMessage
from aiomusicassistant.models.types import MediaItemAction, MediaType

logger = logging.getLogger(__name__)

T = TypeVar("T")

Subscriber = Callable[[T], Awaitable[None] | None]

PLAYER_UPDATED = "player_updated"
QUEUE_EVENTS = frozenset({"queue_updated", "queue_items_updated"})
BUILTIN_PLAYER = "builtin_player"
MEDIA_ITEM_EVENTS = {action.value: action for action in MediaItemAction}


class Topic(Generic[T]):
    """A named channel fanning out published values to its subscribers.

    Subscribers only receive values published after they subscribed. Coroutine
    subscribers run inline with the receive loop, so they must not wait for
    command responses there; start a task for that instead.
    """

    def __init__(self, name: str) -> None:
        """Create an empty topic."""
        self.name = name
        self._subscribers: list[Subscriber[T]] = []

    def __len__(self) -> int:
        """Return the number of subscribers."""
        return len(self._subscribers)

    def subscribe(self, callback: Subscriber[T]) -> Callable[[], None]:
        """Register a callback, return a function removing it.

        The callback may be a plain function or a coroutine function.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def publish(self, value: T) -> None:
        """Deliver value to every current subscriber in subscription order."""
        for callback in list(self._subscribers):
            try:
                result = callback(value)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("Error in %s subscriber %s", self.name, callback)

    async def stream(self) -> AsyncIterator[T]:
        """Iterate over values published from now on."""
        queue: asyncio.Queue[T] = asyncio.Queue()
        unsubscribe = self.subscribe(queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            unsubscribe()


class EventPublisher:
    """Classifies server events and republishes them on typed topics.

    Every event is published on raw_events. Events with a known name are
    additionally decoded and published on the matching typed topic; if
    decoding fails the event only reaches raw_events.
    """

    def __init__(self) -> None:
        """Create the topics."""
        self.raw_events: Topic[EventMessage] = Topic("raw_events")
        self.player_updates: Topic[PlayerUpdateEvent] = Topic("player_updates")
        self.queue_updates: Topic[QueueUpdateEvent] = Topic("queue_updates")
        self.builtin_player_events: Topic[tuple[str, BuiltinPlayerEvent]] = Topic(
            "builtin_player_events"
        )
        self.media_item_updates: Topic[MediaItemEvent] = Topic("media_item_updates")

    async def publish(self, event: EventMessage) -> None:
        """Route a single event."""
        await self.raw_events.publish(event)

        name = event.event
        if name == PLAYER_UPDATED:
            data = _object_data(event)
            if data is not None and event.object_id is not None:
                await self.player_updates.publish(PlayerUpdateEvent(event.object_id, data))
        elif name in QUEUE_EVENTS:
            data = _object_data(event)
            if data is not None and event.object_id is not None:
                await self.queue_updates.publish(QueueUpdateEvent(event.object_id, data))
        elif name.lower() == BUILTIN_PLAYER:
            await self._publish_builtin_player(event)
        elif (action := MEDIA_ITEM_EVENTS.get(name)) is not None:
            data = {} if event.data is None else _object_data(event)
            if data is None:
                return
            media_type = MediaType(data.get("media_type", MediaType.UNKNOWN.value))
            await self.media_item_updates.publish(
                MediaItemEvent(action, event.object_id, media_type, data)
            )

    async def _publish_builtin_player(self, event: EventMessage) -> None:
        data = _object_data(event)
        if data is None:
            return
        try:
            player_event = BuiltinPlayerEvent.from_dict(data)
        except (MissingField, InvalidFieldValue, TypeError, ValueError):
            logger.warning("Dropping malformed built-in player event: %s", data)
            return
        player_id = event.object_id or ""
        await self.builtin_player_events.publish((player_id, player_event))


def _object_data(event: EventMessage) -> dict[str, Any] | None:
    if not isinstance(event.data, dict):
        logger.debug("Event %s has no object payload", event.event)
        return None
    return event.data
