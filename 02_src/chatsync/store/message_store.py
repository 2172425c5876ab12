"""Per-chat message sequences reconciling optimistic, pulled and pushed data."""

import bisect
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Iterable, Protocol

from ..config import DEFAULT_ADOPTION_SKEW_SECONDS
from ..errors import MalformedMessageError, UnknownChatError
from ..logging_config import get_logger
from ..models import Message, MessageDraft, MessageStatus, new_local_id

logger = get_logger(__name__)


class IMessageStore(Protocol):
    """Single source of truth for each chat's message sequence."""

    def append_optimistic(self, chat_id: str, draft: MessageDraft) -> str:
        """Append a pending message; return its local id."""
        ...

    def resolve_optimistic(
        self, chat_id: str, local_id: str, server_message: Message
    ) -> Message:
        """Replace a pending entry with its server-confirmed message."""
        ...

    def fail_optimistic(self, chat_id: str, local_id: str) -> Message | None:
        """Mark a pending entry as failed."""
        ...

    def merge(self, chat_id: str, incoming: Iterable[Message]) -> list[Message]:
        """Merge confirmed messages; return only the genuinely new ones."""
        ...

    def get_ordered(self, chat_id: str) -> list[Message]:
        """Read-only ordered view of a chat."""
        ...


def _id_key(message_id: str) -> tuple:
    # Server ids are numeric strings; "9" sorts before "10"
    if message_id.isdigit():
        return (0, int(message_id), "")
    return (1, 0, message_id)


def _sort_key(message: Message) -> tuple:
    # Unconfirmed entries sort after confirmed ones sharing a timestamp
    rank = 0 if message.status is MessageStatus.CONFIRMED else 1
    return (message.created_at, rank, _id_key(message.id))


class MessageStore:
    """In-memory message sequences, one per chat, sorted by creation time.

    Args:
        strict: Raise MalformedMessageError instead of skipping bad input.
        adoption_skew: How much older than a pending entry (seconds) a
            confirmed message may be and still take that entry's place.
    """

    def __init__(
        self,
        strict: bool = False,
        adoption_skew: float = DEFAULT_ADOPTION_SKEW_SECONDS,
    ):
        self._strict = strict
        self._adoption_skew = timedelta(seconds=adoption_skew)
        self._sequences: dict[str, list[Message]] = {}
        self._versions: dict[str, int] = {}

    # Reads

    def get_ordered(self, chat_id: str) -> list[Message]:
        """Return a copy of the chat's sequence in display order."""
        return list(self._sequences.get(chat_id, []))

    def count(self, chat_id: str) -> int:
        return len(self._sequences.get(chat_id, []))

    def version(self, chat_id: str) -> int:
        """Counter bumped on every mutation of the chat's sequence."""
        return self._versions.get(chat_id, 0)

    def chat_ids(self) -> list[str]:
        return list(self._sequences)

    def pending(self, chat_id: str) -> list[Message]:
        return [
            m
            for m in self._sequences.get(chat_id, [])
            if m.status is MessageStatus.PENDING
        ]

    def find_local(self, chat_id: str, local_id: str) -> Message | None:
        """Look up an unconfirmed entry by its local id."""
        seq = self._sequences.get(chat_id, [])
        idx = self._index_of_local(seq, local_id)
        return seq[idx] if idx is not None else None

    # Optimistic sends

    def append_optimistic(self, chat_id: str, draft: MessageDraft) -> str:
        """Append a pending message at the end of the sequence."""
        seq = self._sequence(chat_id)

        created_at = datetime.now(timezone.utc)
        if seq and seq[-1].created_at > created_at:
            # Server clock ahead of ours; keep the entry last
            created_at = seq[-1].created_at

        local_id = new_local_id()
        seq.append(
            Message(
                id=local_id,
                chat_id=chat_id,
                user_id=draft.user_id,
                content=draft.content,
                created_at=created_at,
                attachments=list(draft.attachments),
                status=MessageStatus.PENDING,
                local_id=local_id,
            )
        )
        self._bump(chat_id)
        return local_id

    def resolve_optimistic(
        self, chat_id: str, local_id: str, server_message: Message
    ) -> Message:
        """
        Replace the pending entry with the confirmed server message.

        If the server id is already present (a push won the race), the pending
        entry is dropped instead of duplicated.
        """
        if not self._is_valid(chat_id, server_message):
            failed = self.fail_optimistic(chat_id, local_id)
            if failed is None:
                raise UnknownChatError(f"No optimistic entry {local_id} in chat {chat_id}")
            return failed

        seq = self._sequence(chat_id)
        idx = self._index_of_local(seq, local_id)
        existing_idx = self._index_of_confirmed(seq, server_message.id)

        if idx is None:
            if existing_idx is not None:
                # Already adopted by a push or pull
                logger.debug(
                    "Resolve for %s is a no-op, %s already present",
                    local_id,
                    server_message.id,
                )
                return seq[existing_idx]
            self.merge(chat_id, [replace(server_message, local_id=local_id)])
            return seq[self._index_of_confirmed(seq, server_message.id)]

        seq.pop(idx)

        if existing_idx is not None:
            existing_idx = self._index_of_confirmed(seq, server_message.id)
            existing = seq[existing_idx]
            if existing.local_id is None:
                existing = replace(existing, local_id=local_id)
                seq[existing_idx] = existing
            self._bump(chat_id)
            logger.info(
                "Dropped optimistic %s, %s was delivered first",
                local_id,
                server_message.id,
                extra={"context": {"chat_id": chat_id}},
            )
            return existing

        confirmed = replace(
            server_message, status=MessageStatus.CONFIRMED, local_id=local_id
        )
        bisect.insort(seq, confirmed, key=_sort_key)
        self._bump(chat_id)
        return confirmed

    def fail_optimistic(self, chat_id: str, local_id: str) -> Message | None:
        """Mark a pending entry failed; it stays visible for retry."""
        seq = self._sequences.get(chat_id, [])
        idx = self._index_of_local(seq, local_id)
        if idx is None:
            return None

        failed = replace(seq[idx], status=MessageStatus.FAILED)
        seq[idx] = failed
        self._bump(chat_id)
        return failed

    def retry_optimistic(self, chat_id: str, local_id: str) -> Message:
        """Flip a failed entry back to pending for an explicit user retry."""
        seq = self._sequences.get(chat_id, [])
        idx = self._index_of_local(seq, local_id)
        if idx is None or seq[idx].status is not MessageStatus.FAILED:
            raise UnknownChatError(f"No failed message {local_id} in chat {chat_id}")

        pending = replace(seq[idx], status=MessageStatus.PENDING)
        seq[idx] = pending
        self._bump(chat_id)
        return pending

    def discard(self, chat_id: str, local_id: str) -> bool:
        """Remove a failed entry the user dismissed."""
        seq = self._sequences.get(chat_id, [])
        idx = self._index_of_local(seq, local_id)
        if idx is None or seq[idx].status is not MessageStatus.FAILED:
            return False

        seq.pop(idx)
        self._bump(chat_id)
        return True

    # Reconciliation

    def merge(self, chat_id: str, incoming: Iterable[Message]) -> list[Message]:
        """
        Merge server-confirmed messages into a chat.

        Messages whose id is already known are skipped, the rest are inserted
        in creation order. A message matching a pending entry of the same
        author and content takes that entry's place and is not reported as new.

        Returns:
            Messages that were not known before this call, in display order.
        """
        seq = self._sequence(chat_id)
        known = {m.id for m in seq if m.status is MessageStatus.CONFIRMED}
        new: list[Message] = []
        changed = False

        for message in incoming:
            if not self._is_valid(chat_id, message):
                continue
            if message.id in known:
                continue

            confirmed = message
            if message.status is not MessageStatus.CONFIRMED:
                confirmed = replace(message, status=MessageStatus.CONFIRMED)

            adopt_idx = self._index_of_adoptable(seq, confirmed)
            if adopt_idx is not None:
                pending = seq.pop(adopt_idx)
                confirmed = replace(confirmed, local_id=pending.local_id)
                bisect.insort(seq, confirmed, key=_sort_key)
                logger.debug(
                    "Adopted optimistic %s as %s", pending.local_id, confirmed.id
                )
            else:
                bisect.insort(seq, confirmed, key=_sort_key)
                new.append(confirmed)

            known.add(confirmed.id)
            changed = True

        if changed:
            self._bump(chat_id)

        new.sort(key=_sort_key)
        return new

    def clear(self, chat_id: str | None = None) -> None:
        """Forget one chat's history, or everything."""
        if chat_id is None:
            self._sequences.clear()
            self._versions.clear()
            return
        self._sequences.pop(chat_id, None)
        self._bump(chat_id)

    # Helpers

    def _sequence(self, chat_id: str) -> list[Message]:
        return self._sequences.setdefault(chat_id, [])

    def _bump(self, chat_id: str) -> None:
        self._versions[chat_id] = self._versions.get(chat_id, 0) + 1

    @staticmethod
    def _index_of_local(seq: list[Message], local_id: str) -> int | None:
        for i, m in enumerate(seq):
            if m.local_id == local_id and m.status is not MessageStatus.CONFIRMED:
                return i
        return None

    @staticmethod
    def _index_of_confirmed(seq: list[Message], message_id: str) -> int | None:
        for i, m in enumerate(seq):
            if m.id == message_id and m.status is MessageStatus.CONFIRMED:
                return i
        return None

    def _index_of_adoptable(self, seq: list[Message], message: Message) -> int | None:
        # Oldest pending entry first; failed entries are never adopted.
        # History older than the draft (minus clock skew) is a different message.
        for i, m in enumerate(seq):
            if (
                m.status is MessageStatus.PENDING
                and m.user_id == message.user_id
                and m.content == message.content
                and len(m.attachments) == len(message.attachments)
                and message.created_at >= m.created_at - self._adoption_skew
            ):
                return i
        return None

    def _is_valid(self, chat_id: str, message: object) -> bool:
        problem = None
        if not isinstance(message, Message):
            problem = f"expected Message, got {type(message).__name__}"
        elif not message.id:
            problem = "message has no id"
        elif message.chat_id != chat_id:
            problem = f"message {message.id} belongs to chat {message.chat_id}"

        if problem is None:
            return True
        if self._strict:
            raise MalformedMessageError(f"Chat {chat_id}: {problem}")
        logger.warning("Ignoring malformed message for chat %s: %s", chat_id, problem)
        return False
