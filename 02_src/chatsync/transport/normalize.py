"""
Single normalization step at the transport boundary.

The backend answers in several envelopes (``{"data": {"data": [...]}}`` for
paginated resources, ``{"data": [...]}``, bare lists, ``{"message": {...}}``
for pushes). Everything here turns those into canonical models so the sync
core never inspects response shapes.
"""

from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError, model_validator

from ..logging_config import get_logger
from ..models import Attachment, Chat, Message, MessageStatus

logger = get_logger(__name__)


def _to_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value))
    return value


WireId = Annotated[str, BeforeValidator(_to_str)]


class WireAttachment(BaseModel):
    """Attachment as serialized by the backend."""

    model_config = ConfigDict(extra="ignore")

    id: WireId | None = None
    file_name: str = ""
    file_size: int = 0
    file_type: str = ""


class WireUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: WireId


class WireMessage(BaseModel):
    """Message as serialized by the REST API and the MessageSent broadcast."""

    model_config = ConfigDict(extra="ignore")

    id: WireId
    chat_id: WireId
    user_id: WireId | None = None
    user: WireUser | None = None
    content: str | None = None
    attachments: list[WireAttachment] | None = None
    created_at: datetime

    @model_validator(mode="after")
    def _require_author(self) -> "WireMessage":
        if self.user_id is None:
            if self.user is None:
                raise ValueError("message has neither user_id nor user")
            self.user_id = self.user.id
        return self

    def to_message(self) -> Message:
        created_at = self.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return Message(
            id=self.id,
            chat_id=self.chat_id,
            user_id=self.user_id,
            content=self.content or "",
            created_at=created_at.astimezone(timezone.utc),
            attachments=[
                Attachment(
                    id=a.id,
                    file_name=a.file_name,
                    file_size=a.file_size,
                    file_type=a.file_type,
                )
                for a in self.attachments or []
            ],
            status=MessageStatus.CONFIRMED,
        )


class WireParticipant(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: WireId


class WireChat(BaseModel):
    """Chat as serialized by ChatResource."""

    model_config = ConfigDict(extra="ignore")

    id: WireId
    name: str | None = None
    is_group: bool | None = None
    type: str | None = None
    participants: list[WireParticipant] | None = None
    last_message_at: datetime | None = None

    def to_chat(self) -> Chat:
        is_group = self.is_group if self.is_group is not None else self.type == "group"
        last = self.last_message_at
        if last is not None and last.tzinfo is None:
            last = last.replace(tzinfo=timezone.utc)
        return Chat(
            id=self.id,
            is_group=is_group,
            participants=frozenset(p.user_id for p in self.participants or []),
            last_message_at=last,
            name=self.name or "",
        )


def _unwrap(payload: Any) -> Any:
    """Peel ``data`` envelopes (Laravel resources nest them for pagination)."""
    while isinstance(payload, dict) and "data" in payload:
        payload = payload["data"]
    return payload


def _with_chat_id(item: Any, chat_id: str | None) -> Any:
    if chat_id is not None and isinstance(item, dict) and "chat_id" not in item:
        return {**item, "chat_id": chat_id}
    return item


def normalize_message(payload: Any, chat_id: str | None = None) -> Message | None:
    """Canonical message from a send response or push payload, or None."""
    body = _unwrap(payload)
    if isinstance(body, dict) and isinstance(body.get("message"), dict):
        body = body["message"]

    try:
        return WireMessage.model_validate(_with_chat_id(body, chat_id)).to_message()
    except ValidationError as e:
        logger.warning("Dropping malformed message payload: %s", e.errors()[:1])
        return None


def normalize_messages(payload: Any, chat_id: str | None = None) -> list[Message]:
    """Canonical message list from any list envelope; malformed items are skipped."""
    body = _unwrap(payload)
    if not isinstance(body, list):
        logger.warning("Unexpected messages payload type: %s", type(body).__name__)
        return []

    messages = []
    for item in body:
        try:
            messages.append(
                WireMessage.model_validate(_with_chat_id(item, chat_id)).to_message()
            )
        except ValidationError as e:
            logger.warning("Skipping malformed message: %s", e.errors()[:1])
    return messages


def normalize_chats(payload: Any) -> list[Chat]:
    """Canonical chat list from the chats index."""
    body = _unwrap(payload)
    if not isinstance(body, list):
        return []

    chats = []
    for item in body:
        try:
            chats.append(WireChat.model_validate(item).to_chat())
        except ValidationError as e:
            logger.warning("Skipping malformed chat: %s", e.errors()[:1])
    return chats


def normalize_unread_counts(payload: Any) -> dict[str, int]:
    """
    Unread counts keyed by chat id.

    Accepts ``{"data": {"chats": {id: n}, "total": n}}`` and the older list
    form ``[{"chat_id": id, "unread_count": n}]``.
    """
    body = _unwrap(payload)
    if isinstance(body, dict) and isinstance(body.get("chats"), dict):
        body = body["chats"]

    counts: dict[str, int] = {}
    if isinstance(body, dict):
        items = body.items()
    elif isinstance(body, list):
        items = [
            (item.get("chat_id"), item.get("unread_count"))
            for item in body
            if isinstance(item, dict)
        ]
    else:
        return counts

    for chat_id, count in items:
        if chat_id is None:
            continue
        try:
            counts[str(_to_str(chat_id))] = max(int(count or 0), 0)
        except (TypeError, ValueError):
            logger.warning("Skipping unread count %r for chat %s", count, chat_id)
    return counts
