"""Loopback chat backend kept in memory, used by the simulator and tests."""

import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from typing import Sequence

from ..errors import TransportError
from ..logging_config import get_logger
from ..models import AttachmentFile, Chat, Message
from .base import MessageHandler, Unsubscribe

logger = get_logger(__name__)


class InMemoryChatServer:
    """
    Fake backend implementing IChatTransport for the current user.

    Remote users post through ``post_message``; their messages are pushed to
    the chat channel and the inbox. The current user's own sends are pushed
    back only when ``echo_to_sender`` is set (the real backend broadcasts
    "to others").
    """

    def __init__(self, current_user_id: str = "me", echo_to_sender: bool = False):
        self._current_user_id = current_user_id
        self.echo_to_sender = echo_to_sender
        self.deliver_pushes = True
        self.send_delay = 0.0
        self.fetch_delay = 0.0

        self._chats: dict[str, Chat] = {}
        self._messages: dict[str, list[Message]] = {}
        self._read_marks: dict[str, int] = {}  # chat_id -> messages read
        self._ids = itertools.count(1)
        self._last_created_at: datetime | None = None
        self._fail_next = 0
        self._chat_handlers: dict[str, list[MessageHandler]] = {}
        self._inbox_handlers: list[MessageHandler] = []

        self.fetch_count = 0
        self.mark_read_count = 0

    # Scenario helpers

    def create_chat(
        self,
        chat_id: str,
        is_group: bool = False,
        participants: Sequence[str] = (),
        name: str = "",
    ) -> Chat:
        members = frozenset(participants) | {self._current_user_id}
        chat = Chat(id=chat_id, is_group=is_group, participants=members, name=name)
        self._chats[chat_id] = chat
        self._messages.setdefault(chat_id, [])
        return chat

    def has_chat(self, chat_id: str) -> bool:
        return chat_id in self._chats

    def fail_next(self, count: int = 1) -> None:
        """Make the next ``count`` network calls raise TransportError."""
        self._fail_next += count

    async def post_message(
        self,
        chat_id: str,
        user_id: str,
        content: str,
        attachments: Sequence[AttachmentFile] = (),
        push: bool = True,
    ) -> Message:
        """A remote participant posts a message."""
        message = self._store(chat_id, user_id, content, attachments)
        if push:
            await self._push(message)
        return message

    def messages(self, chat_id: str) -> list[Message]:
        return list(self._messages.get(chat_id, []))

    # IChatTransport

    async def fetch_messages(self, chat_id: str) -> list[Message]:
        self._maybe_fail("fetch_messages")
        self._require_chat(chat_id)
        self.fetch_count += 1
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        return list(self._messages[chat_id])

    async def send_message(
        self,
        chat_id: str,
        content: str,
        attachment_files: Sequence[AttachmentFile] = (),
    ) -> Message | None:
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        self._maybe_fail("send_message")
        self._require_chat(chat_id)

        message = self._store(chat_id, self._current_user_id, content, attachment_files)
        if self.echo_to_sender:
            await self._push(message)
        return message

    def subscribe(self, chat_id: str, on_message: MessageHandler) -> Unsubscribe:
        self._chat_handlers.setdefault(chat_id, []).append(on_message)

        def unsubscribe() -> None:
            handlers = self._chat_handlers.get(chat_id, [])
            if on_message in handlers:
                handlers.remove(on_message)

        return unsubscribe

    def subscribe_inbox(self, on_message: MessageHandler) -> Unsubscribe:
        self._inbox_handlers.append(on_message)

        def unsubscribe() -> None:
            if on_message in self._inbox_handlers:
                self._inbox_handlers.remove(on_message)

        return unsubscribe

    def subscriber_count(self, chat_id: str) -> int:
        return len(self._chat_handlers.get(chat_id, []))

    async def mark_read(self, chat_id: str) -> None:
        self._maybe_fail("mark_read")
        self._require_chat(chat_id)
        self.mark_read_count += 1
        self._read_marks[chat_id] = len(self._messages[chat_id])

    async def fetch_chats(self) -> list[Chat]:
        self._maybe_fail("fetch_chats")
        return list(self._chats.values())

    async def fetch_unread_counts(self) -> dict[str, int]:
        self._maybe_fail("fetch_unread_counts")
        counts = {}
        for chat_id, messages in self._messages.items():
            read = self._read_marks.get(chat_id, 0)
            counts[chat_id] = sum(
                1 for m in messages[read:] if m.user_id != self._current_user_id
            )
        return counts

    async def close(self) -> None:
        self._chat_handlers.clear()
        self._inbox_handlers.clear()

    # Helpers

    def _store(
        self,
        chat_id: str,
        user_id: str,
        content: str,
        attachments: Sequence[AttachmentFile],
    ) -> Message:
        self._require_chat(chat_id)

        created_at = datetime.now(timezone.utc)
        if self._last_created_at and created_at <= self._last_created_at:
            created_at = self._last_created_at + timedelta(microseconds=1)
        self._last_created_at = created_at

        message = Message(
            id=str(next(self._ids)),
            chat_id=chat_id,
            user_id=user_id,
            content=content,
            created_at=created_at,
            attachments=[f.describe() for f in attachments],
        )
        self._messages[chat_id].append(message)
        self._chats[chat_id].touch(created_at)
        return message

    async def _push(self, message: Message) -> None:
        if not self.deliver_pushes:
            return

        handlers = list(self._chat_handlers.get(message.chat_id, []))
        handlers += self._inbox_handlers
        results = await asyncio.gather(
            *[handler(message) for handler in handlers],
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error("Push handler failed for chat %s: %s", message.chat_id, result)

    def _require_chat(self, chat_id: str) -> None:
        if chat_id not in self._chats:
            raise TransportError(f"Chat {chat_id} not found", status_code=404)

    def _maybe_fail(self, operation: str) -> None:
        if self._fail_next > 0:
            self._fail_next -= 1
            raise TransportError(f"Simulated network failure in {operation}", status_code=503)
