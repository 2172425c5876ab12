"""Error types raised inside the sync engine."""


class ChatSyncError(Exception):
    """Base class for chat sync errors."""


class TransportError(ChatSyncError):
    """Network or HTTP failure reported by a chat transport."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedMessageError(ChatSyncError):
    """A message handed to the store fails basic shape checks (strict mode only)."""


class UnknownChatError(ChatSyncError):
    """Referenced chat or optimistic entry does not exist."""
