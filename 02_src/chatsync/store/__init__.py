"""MessageStore module."""

from .message_store import IMessageStore, MessageStore

__all__ = ["IMessageStore", "MessageStore"]
