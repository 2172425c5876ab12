"""Chat-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ChatState(str, Enum):
    """Lifecycle of a chat inside the sync controller."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    SENDING = "sending"
    RECEIVING = "receiving"


@dataclass
class Chat:
    """A private or group conversation."""

    id: str
    is_group: bool = False
    participants: frozenset[str] = field(default_factory=frozenset)
    last_message_at: datetime | None = None
    name: str = ""

    def touch(self, created_at: datetime) -> None:
        """Advance last_message_at, never moving it backwards."""
        if self.last_message_at is None or created_at > self.last_message_at:
            self.last_message_at = created_at

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_group": self.is_group,
            "participants": sorted(self.participants),
            "last_message_at": (
                self.last_message_at.isoformat() if self.last_message_at else None
            ),
        }
