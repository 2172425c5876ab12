"""Chat sync core module."""

from .app import Application, IApplication
from .config import SyncSettings
from .errors import (
    ChatSyncError,
    MalformedMessageError,
    TransportError,
    UnknownChatError,
)
from .event_bus import ISyncEventBus, SyncEventBus
from .models import (
    Attachment,
    AttachmentFile,
    Chat,
    ChatState,
    ContainerMetrics,
    Message,
    MessageDraft,
    MessageStatus,
    ScrollState,
    ScrollTrigger,
    SyncEvent,
    SyncResult,
    SyncTopic,
    TraceEvent,
)
from .scroll import ScrollPolicy
from .storage import IStorage, Storage
from .store import IMessageStore, MessageStore
from .sync import ChatSyncController, IChatSyncController
from .tracker import ITracker, Tracker
from .transport import HttpChatTransport, IChatTransport, InMemoryChatServer
from .unread import UnreadTracker

__all__ = [
    # Application
    "Application",
    "IApplication",
    "SyncSettings",
    # Errors
    "ChatSyncError",
    "MalformedMessageError",
    "TransportError",
    "UnknownChatError",
    # Models
    "Attachment",
    "AttachmentFile",
    "Chat",
    "ChatState",
    "ContainerMetrics",
    "Message",
    "MessageDraft",
    "MessageStatus",
    "ScrollState",
    "ScrollTrigger",
    "SyncEvent",
    "SyncResult",
    "SyncTopic",
    "TraceEvent",
    # Components
    "ChatSyncController",
    "IChatSyncController",
    "IMessageStore",
    "MessageStore",
    "ScrollPolicy",
    "UnreadTracker",
    "ISyncEventBus",
    "SyncEventBus",
    "IStorage",
    "Storage",
    "ITracker",
    "Tracker",
    # Transports
    "IChatTransport",
    "HttpChatTransport",
    "InMemoryChatServer",
]
