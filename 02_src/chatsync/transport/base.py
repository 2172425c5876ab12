"""ChatTransport protocol: the black box between the sync core and the backend."""

from typing import Awaitable, Callable, Protocol, Sequence

from ..models import AttachmentFile, Chat, Message

MessageHandler = Callable[[Message], Awaitable[None]]
Unsubscribe = Callable[[], None]


class IChatTransport(Protocol):
    """REST + push access to the chat backend. Failures raise TransportError."""

    async def fetch_messages(self, chat_id: str) -> list[Message]:
        """Fetch a chat's messages in canonical form."""
        ...

    async def send_message(
        self,
        chat_id: str,
        content: str,
        attachment_files: Sequence[AttachmentFile] = (),
    ) -> Message | None:
        """Send a message; return the confirmed message, or None if not echoed back."""
        ...

    def subscribe(self, chat_id: str, on_message: MessageHandler) -> Unsubscribe:
        """Subscribe to a single chat's push channel."""
        ...

    def subscribe_inbox(self, on_message: MessageHandler) -> Unsubscribe:
        """Subscribe to the current user's channel (pushes for every chat)."""
        ...

    async def mark_read(self, chat_id: str) -> None:
        """Acknowledge everything in the chat as read."""
        ...

    async def fetch_chats(self) -> list[Chat]:
        """List the current user's chats."""
        ...

    async def fetch_unread_counts(self) -> dict[str, int]:
        """Server-side unread counts per chat."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...
