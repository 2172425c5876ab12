"""Event-bus data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class SyncTopic(str, Enum):
    """SyncEventBus topics consumed by the UI layer."""

    MESSAGES = "messages"  # sequence of a chat changed
    UNREAD = "unread"  # unread counts changed
    SCROLL = "scroll"  # UI should scroll a chat to the bottom
    STATUS = "status"  # non-blocking banner (pull failed, send failed)


@dataclass
class SyncEvent:
    """A notification dispatched through the SyncEventBus."""

    id: str
    topic: SyncTopic
    chat_id: str | None
    payload: dict  # varies by topic
    timestamp: datetime
