"""Chat transports: protocol, response normalization and implementations."""

from .base import IChatTransport, MessageHandler, Unsubscribe
from .http import HttpChatTransport
from .memory import InMemoryChatServer
from .normalize import (
    normalize_chats,
    normalize_message,
    normalize_messages,
    normalize_unread_counts,
)

__all__ = [
    "IChatTransport",
    "MessageHandler",
    "Unsubscribe",
    "HttpChatTransport",
    "InMemoryChatServer",
    "normalize_chats",
    "normalize_message",
    "normalize_messages",
    "normalize_unread_counts",
]
