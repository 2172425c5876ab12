"""Message-related data models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

LOCAL_ID_PREFIX = "local-"


class MessageStatus(str, Enum):
    """Delivery status of a message in the local sequence."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class Attachment:
    """Descriptor of a file attached to a message (opaque to the sync core)."""

    id: str | None
    file_name: str
    file_size: int = 0
    file_type: str = ""


@dataclass(frozen=True)
class AttachmentFile:
    """A file the user wants to upload with a message."""

    file_name: str
    content: bytes
    content_type: str = "application/octet-stream"

    def describe(self) -> Attachment:
        """Descriptor shown on the optimistic entry before the upload completes."""
        return Attachment(
            id=None,
            file_name=self.file_name,
            file_size=len(self.content),
            file_type=self.content_type,
        )


@dataclass
class MessageDraft:
    """What the user typed, before it becomes a pending message."""

    user_id: str
    content: str
    attachments: list[Attachment] = field(default_factory=list)


@dataclass
class Message:
    """A single chat message."""

    id: str
    chat_id: str
    user_id: str
    content: str
    created_at: datetime
    attachments: list[Attachment] = field(default_factory=list)
    status: MessageStatus = MessageStatus.CONFIRMED
    local_id: str | None = None

    @property
    def is_confirmed(self) -> bool:
        return self.status is MessageStatus.CONFIRMED

    def to_dict(self) -> dict:
        """Plain representation for API responses and bus payloads."""
        return {
            "id": self.id,
            "chat_id": self.chat_id,
            "user_id": self.user_id,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
            "local_id": self.local_id,
            "attachments": [
                {
                    "id": a.id,
                    "file_name": a.file_name,
                    "file_size": a.file_size,
                    "file_type": a.file_type,
                }
                for a in self.attachments
            ],
        }


def new_local_id() -> str:
    """Generate a client-side id that can never collide with a server id."""
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4()}"
