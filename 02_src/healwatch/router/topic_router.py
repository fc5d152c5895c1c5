"""TopicRouter implementation."""

import asyncio
import json
from typing import Callable, Mapping, Protocol

from ..buffer import IEventBuffer
from ..channel.stomp import Frame
from ..logging_config import get_logger
from ..models import Category, Event, event_from_dict

logger = get_logger(__name__)


PIPELINE_TOPIC = "/topic/pipeline-events"
HEALING_TOPIC = "/topic/healing-events"
SECURITY_TOPIC = "/topic/security-events"

TOPICS: dict[str, Category] = {
    PIPELINE_TOPIC: Category.PIPELINE,
    HEALING_TOPIC: Category.HEALING,
    SECURITY_TOPIC: Category.SECURITY,
}

Listener = Callable[[Event], None]
Unsubscribe = Callable[[], None]


class ITopicRouter(Protocol):
    """Demultiplexes push frames into category buffers and resource listeners."""

    def route(self, frame: Frame) -> Event | None:
        """Decode a MESSAGE frame, store it, and fan it out."""
        ...

    def subscribe(self, resource_key: str, callback: Listener) -> Unsubscribe:
        """Register a listener for one resource key."""
        ...


class TopicRouter:
    """Routes push frames to category buffers and per-resource listeners."""

    def __init__(
        self,
        buffers: Mapping[Category, IEventBuffer],
        topics: Mapping[str, Category] | None = None,
    ):
        self._buffers = buffers
        self._topics = dict(topics or TOPICS)
        self._listeners: dict[str, list[Listener]] = {}

    @property
    def topics(self) -> list[str]:
        return list(self._topics)

    def route(self, frame: Frame) -> Event | None:
        """Decode a MESSAGE frame, prepend it to its buffer, notify listeners.

        Frames for unknown topics and bodies that are not a JSON object with
        an id are dropped. Events outside the buffer scope still reach listeners.
        Returns the decoded Event, or None when dropped.
        """
        category = self._topics.get(frame.destination or "")
        if category is None:
            logger.warning("Dropping frame for unknown topic %s", frame.destination)
            return None

        try:
            data = json.loads(frame.body)
        except ValueError:
            logger.warning(
                "Dropping non-JSON %s frame", category.value, extra={"category": category.value}
            )
            return None

        if not isinstance(data, dict):
            logger.warning("Dropping non-object %s frame", category.value)
            return None

        event = event_from_dict(category, data)
        if event is None:
            logger.warning("Dropping %s frame without id", category.value)
            return None

        if not self._buffers[category].prepend(event):
            logger.debug("%s event %s outside buffer scope", category.value, event.id)

        if event.resource_key:
            self._notify(event.resource_key, event)
        return event

    def subscribe(self, resource_key: str, callback: Listener) -> Unsubscribe:
        """Register ``callback`` for events whose resource key equals ``resource_key``."""
        self._listeners.setdefault(resource_key, []).append(callback)

        def unsubscribe() -> None:
            listeners = self._listeners.get(resource_key)
            if not listeners or callback not in listeners:
                return
            listeners.remove(callback)
            if not listeners:
                del self._listeners[resource_key]

        return unsubscribe

    def listener_count(self, resource_key: str) -> int:
        return len(self._listeners.get(resource_key, ()))

    def _notify(self, resource_key: str, event: Event) -> None:
        # Copy: a listener may unsubscribe while being called
        for listener in list(self._listeners.get(resource_key, ())):
            try:
                listener(event)
            except Exception as e:
                logger.error(
                    "Error in listener for %s: %s",
                    resource_key,
                    e,
                    exc_info=True,
                    extra={"resource_key": resource_key},
                )


class ResourceStream:
    """Bounded queue of events for one resource key, consumed with ``async for``.

    When the consumer falls behind, the oldest queued event is dropped.
    """

    def __init__(self, router: ITopicRouter, resource_key: str, maxsize: int = 100):
        self.resource_key = resource_key
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)
        self._unsubscribe: Unsubscribe | None = router.subscribe(resource_key, self._push)
        self.dropped = 0

    def _push(self, event: Event) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(event)

    async def get(self) -> Event:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def __aiter__(self) -> "ResourceStream":
        return self

    async def __anext__(self) -> Event:
        if self._unsubscribe is None and self._queue.empty():
            raise StopAsyncIteration
        return await self._queue.get()

    async def __aenter__(self) -> "ResourceStream":
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()
