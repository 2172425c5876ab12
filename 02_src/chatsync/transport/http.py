"""HTTP transport for the Laravel chat API (httpx) plus push ingest."""

import asyncio
from typing import Any, Sequence

import httpx

from ..config import DEFAULT_HTTP_TIMEOUT
from ..errors import TransportError
from ..logging_config import get_logger
from ..models import AttachmentFile, Chat, Message
from .base import MessageHandler, Unsubscribe
from .normalize import (
    normalize_chats,
    normalize_message,
    normalize_messages,
    normalize_unread_counts,
)

logger = get_logger(__name__)


class HttpChatTransport:
    """
    REST client for ``/chats`` endpoints.

    Push delivery arrives out-of-band (broker webhook or socket bridge) through
    ``ingest_push``, which fans the normalized message out to the chat channel
    and inbox subscribers.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        headers = {
            "Accept": "application/json",
            "X-Requested-With": "XMLHttpRequest",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout
        )
        self._chat_handlers: dict[str, list[MessageHandler]] = {}
        self._inbox_handlers: list[MessageHandler] = []

    # REST

    async def fetch_messages(self, chat_id: str) -> list[Message]:
        payload = await self._request(
            "GET",
            f"/chats/{chat_id}/messages",
            params={"sort_by": "created_at", "sort_direction": "asc"},
        )
        return normalize_messages(payload, chat_id=chat_id)

    async def send_message(
        self,
        chat_id: str,
        content: str,
        attachment_files: Sequence[AttachmentFile] = (),
    ) -> Message | None:
        if attachment_files:
            # Always send content so the backend never stores NULL
            payload = await self._request(
                "POST",
                f"/chats/{chat_id}/messages",
                data={"content": content},
                files=[
                    ("attachments[]", (f.file_name, f.content, f.content_type))
                    for f in attachment_files
                ],
            )
        else:
            payload = await self._request(
                "POST", f"/chats/{chat_id}/messages", json={"content": content}
            )

        message = normalize_message(payload, chat_id=chat_id)
        if message is None:
            logger.warning("Message sent to chat %s but no data returned", chat_id)
        return message

    async def mark_read(self, chat_id: str) -> None:
        await self._request("POST", f"/chats/{chat_id}/read")

    async def fetch_chats(self) -> list[Chat]:
        return normalize_chats(await self._request("GET", "/chats"))

    async def fetch_unread_counts(self) -> dict[str, int]:
        return normalize_unread_counts(await self._request("GET", "/chats/unread-counts"))

    # Push

    def subscribe(self, chat_id: str, on_message: MessageHandler) -> Unsubscribe:
        self._chat_handlers.setdefault(chat_id, []).append(on_message)

        def unsubscribe() -> None:
            handlers = self._chat_handlers.get(chat_id, [])
            if on_message in handlers:
                handlers.remove(on_message)
            if not handlers:
                self._chat_handlers.pop(chat_id, None)

        return unsubscribe

    def subscribe_inbox(self, on_message: MessageHandler) -> Unsubscribe:
        self._inbox_handlers.append(on_message)

        def unsubscribe() -> None:
            if on_message in self._inbox_handlers:
                self._inbox_handlers.remove(on_message)

        return unsubscribe

    async def ingest_push(self, payload: Any) -> Message | None:
        """Normalize a broadcast payload and deliver it to subscribers."""
        message = normalize_message(payload)
        if message is None:
            return None

        handlers = list(self._chat_handlers.get(message.chat_id, []))
        handlers += self._inbox_handlers
        results = await asyncio.gather(
            *[handler(message) for handler in handlers],
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error("Push handler failed for chat %s: %s", message.chat_id, result)
        return message

    async def close(self) -> None:
        self._chat_handlers.clear()
        self._inbox_handlers.clear()
        if self._owns_client:
            await self._client.aclose()

    # Helpers

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        if response.is_error:
            raise TransportError(
                self._error_message(response), status_code=response.status_code
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(
                f"{method} {url} returned invalid JSON",
                status_code=response.status_code,
            ) from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            for key in ("message", "error"):
                if isinstance(body.get(key), str) and body[key]:
                    return body[key]
        return f"HTTP {response.status_code}"
