"""SyncEventBus implementation for UI-facing notifications."""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, Protocol

from ..logging_config import get_logger
from ..models import SyncEvent, SyncTopic

logger = get_logger(__name__)


TopicHandler = Callable[[SyncEvent], Awaitable[None]]
Unsubscribe = Callable[[], None]


class ISyncEventBus(Protocol):
    """In-process pub/sub replacing ad-hoc window events."""

    def subscribe(self, topic: SyncTopic, handler: TopicHandler) -> Unsubscribe:
        """Subscribe a handler to a topic; returns an idempotent unsubscribe."""
        ...

    async def publish(
        self, topic: SyncTopic, chat_id: str | None, payload: dict
    ) -> SyncEvent:
        """Build a SyncEvent and deliver it to every subscriber of its topic."""
        ...


class SyncEventBus:
    """In-memory pub/sub event bus."""

    def __init__(self):
        self._subscribers: dict[SyncTopic, list[TopicHandler]] = {
            topic: [] for topic in SyncTopic
        }

    def subscribe(self, topic: SyncTopic, handler: TopicHandler) -> Unsubscribe:
        """Subscribe a handler to a topic."""
        self._subscribers[topic].append(handler)

        def unsubscribe() -> None:
            handlers = self._subscribers[topic]
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    async def publish(
        self, topic: SyncTopic, chat_id: str | None, payload: dict
    ) -> SyncEvent:
        """Deliver an event to subscribers; handler errors are logged, not raised."""
        event = SyncEvent(
            id=str(uuid.uuid4()),
            topic=topic,
            chat_id=chat_id,
            payload=payload,
            timestamp=datetime.now(timezone.utc),
        )

        # Snapshot so a handler that unsubscribes itself does not skip a sibling
        handlers = list(self._subscribers.get(topic, []))

        if handlers:
            results = await asyncio.gather(
                *[handler(event) for handler in handlers],
                return_exceptions=True,
            )

            for i, result in enumerate(results):
                if isinstance(result, Exception):
                    logger.error(
                        "Error in %s handler %s: %s", topic.value, i, result
                    )

        return event
