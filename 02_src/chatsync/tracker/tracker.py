"""Tracker implementation for creating TraceEvents."""

import uuid
from datetime import datetime, timezone
from typing import Protocol

from ..event_bus import ISyncEventBus
from ..models import SyncEvent, SyncTopic, TraceEvent
from ..storage import IStorage


class ITracker(Protocol):
    """Creating TraceEvents. Two channels: SyncEventBus subscription + direct calls."""

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        """Create TraceEvent and save to Storage."""
        ...

    async def stop(self) -> None:
        """Stop tracker."""
        ...


class Tracker:
    """Creates TraceEvents via SyncEventBus subscription and direct track() calls."""

    def __init__(self, event_bus: ISyncEventBus, storage: IStorage):
        self._event_bus = event_bus
        self._storage = storage
        self._unsubscribers: list = []

    async def start(self) -> None:
        """Subscribe to all SyncEventBus topics."""
        for topic in SyncTopic:
            self._unsubscribers.append(
                self._event_bus.subscribe(topic, self._handle_sync_event)
            )

    async def _handle_sync_event(self, event: SyncEvent) -> None:
        """Record every bus event with a short payload summary."""
        payload_summary = str(event.payload)[:100]

        await self.track(
            event_type="sync_event_published",
            actor="event_bus",
            data={
                "topic": event.topic.value,
                "chat_id": event.chat_id,
                "payload_summary": payload_summary,
            },
        )

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        """Create TraceEvent and save to Storage."""
        trace_event = TraceEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            actor=actor,
            data=data,
            timestamp=datetime.now(timezone.utc),
        )
        await self._storage.save_trace_event(trace_event)

    async def stop(self) -> None:
        """Drop bus subscriptions."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
