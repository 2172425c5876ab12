"""SyncEventBus module."""

from .event_bus import ISyncEventBus, SyncEventBus, TopicHandler

__all__ = ["ISyncEventBus", "SyncEventBus", "TopicHandler"]
