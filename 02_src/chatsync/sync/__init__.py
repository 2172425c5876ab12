"""Chat synchronization controller."""

from .controller import ChatSyncController, IChatSyncController

__all__ = ["ChatSyncController", "IChatSyncController"]
