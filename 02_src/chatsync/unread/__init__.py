"""UnreadTracker module."""

from .unread_tracker import UnreadTracker

__all__ = ["UnreadTracker"]
