"""Core data models for the chat sync engine."""

from .messages import (
    Attachment,
    AttachmentFile,
    Message,
    MessageDraft,
    MessageStatus,
    new_local_id,
)
from .chats import Chat, ChatState
from .scroll import ContainerMetrics, ScrollState, ScrollTrigger
from .results import SyncResult
from .events import SyncEvent, SyncTopic
from .tracing import TraceEvent

__all__ = [
    # Messages
    "Attachment",
    "AttachmentFile",
    "Message",
    "MessageDraft",
    "MessageStatus",
    "new_local_id",
    # Chats
    "Chat",
    "ChatState",
    # Scroll
    "ContainerMetrics",
    "ScrollState",
    "ScrollTrigger",
    # Results
    "SyncResult",
    # Events
    "SyncEvent",
    "SyncTopic",
    # Tracing
    "TraceEvent",
]
