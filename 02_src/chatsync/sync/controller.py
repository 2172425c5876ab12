"""ChatSyncController: merges pushes, pulls and optimistic sends per chat."""

import asyncio
from typing import Protocol, Sequence

from ..config import SyncSettings
from ..errors import TransportError, UnknownChatError
from ..event_bus import ISyncEventBus, SyncEventBus, TopicHandler
from ..logging_config import get_logger
from ..models import (
    AttachmentFile,
    Chat,
    ChatState,
    ContainerMetrics,
    Message,
    MessageDraft,
    MessageStatus,
    ScrollState,
    ScrollTrigger,
    SyncResult,
    SyncTopic,
)
from ..scroll import ScrollPolicy
from ..store import MessageStore
from ..tracker import ITracker
from ..transport import IChatTransport, Unsubscribe
from ..unread import UnreadTracker

logger = get_logger(__name__)

ACTOR = "chat_sync"


class IChatSyncController(Protocol):
    """Client-side synchronization contract consumed by the UI layer."""

    async def open_chat(self, chat_id: str) -> SyncResult:
        """Activate a chat, load its history and zero its unread count."""
        ...

    async def on_push(self, message: Message) -> list[Message]:
        """Apply a message delivered by the push channel."""
        ...

    async def send_message(
        self,
        chat_id: str,
        content: str,
        attachments: Sequence[AttachmentFile] = (),
    ) -> SyncResult:
        """Optimistically append, send, then confirm or fail the message."""
        ...

    async def reconcile(self, chat_id: str | None = None, force: bool = False) -> SyncResult:
        """Pull a chat's messages as a safety net against missed pushes."""
        ...


class ChatSyncController:
    """Process-wide sync engine; construct once and inject into the UI layer."""

    def __init__(
        self,
        transport: IChatTransport,
        current_user_id: str,
        store: MessageStore | None = None,
        unread: UnreadTracker | None = None,
        event_bus: ISyncEventBus | None = None,
        tracker: ITracker | None = None,
        settings: SyncSettings | None = None,
    ):
        self._settings = settings or SyncSettings(current_user_id=current_user_id)
        self._transport = transport
        self._current_user_id = current_user_id
        self._store = store or MessageStore(
            strict=self._settings.strict,
            adoption_skew=self._settings.adoption_skew_seconds,
        )
        self._unread = unread or UnreadTracker()
        self._event_bus = event_bus or SyncEventBus()
        self._tracker = tracker

        self._chats: dict[str, Chat] = {}
        self._states: dict[str, ChatState] = {}
        self._active_chat_id: str | None = None
        self._scroll: dict[str, ScrollPolicy] = {}

        self._chat_unsubscribe: dict[str, Unsubscribe] = {}
        self._inbox_unsubscribe: Unsubscribe | None = None

        self._sending: set[str] = set()
        self._outbox: dict[str, list[AttachmentFile]] = {}  # local_id -> files
        self._pulls: dict[str, asyncio.Task] = {}
        self._last_pull: dict[str, float] = {}
        self._poll_task: asyncio.Task | None = None
        self._running = False

    # Lifecycle

    async def start(self) -> None:
        """Subscribe to the inbox channel and start reconciliation polling."""
        if self._running:
            return
        logger.info("Starting ChatSyncController for user %s", self._current_user_id)
        self._running = True
        self._inbox_unsubscribe = self._transport.subscribe_inbox(self.on_push)

        if self._settings.reconcile_interval_seconds > 0:
            self._poll_task = asyncio.create_task(self._reconcile_loop())

    async def stop(self) -> None:
        """Cancel polling and pulls, drop every subscription."""
        logger.info("Stopping ChatSyncController")
        self._running = False

        if self._poll_task:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        for task in list(self._pulls.values()):
            task.cancel()
        self._pulls.clear()

        if self._active_chat_id is not None:
            self._deactivate(self._active_chat_id)
            self._active_chat_id = None

        for unsubscribe in self._chat_unsubscribe.values():
            unsubscribe()
        self._chat_unsubscribe.clear()

        if self._inbox_unsubscribe:
            self._inbox_unsubscribe()
            self._inbox_unsubscribe = None

    async def reset(self) -> None:
        """Forget all local state (between sessions or test runs)."""
        await self.stop()
        self._store.clear()
        self._unread.clear()
        self._chats.clear()
        self._states.clear()
        self._outbox.clear()
        self._last_pull.clear()

    # Accessors

    @property
    def store(self) -> MessageStore:
        return self._store

    @property
    def unread(self) -> UnreadTracker:
        return self._unread

    @property
    def event_bus(self) -> ISyncEventBus:
        return self._event_bus

    @property
    def active_chat_id(self) -> str | None:
        return self._active_chat_id

    @property
    def current_user_id(self) -> str:
        return self._current_user_id

    def state(self, chat_id: str) -> ChatState:
        return self._states.get(chat_id, ChatState.IDLE)

    def scroll_state(self, chat_id: str) -> ScrollState:
        policy = self._scroll.get(chat_id)
        return policy.state if policy else ScrollState()

    def get_messages(self, chat_id: str) -> list[Message]:
        return self._store.get_ordered(chat_id)

    def subscribe(self, topic: SyncTopic, handler: TopicHandler) -> Unsubscribe:
        """Let a UI component listen for sync notifications."""
        return self._event_bus.subscribe(topic, handler)

    async def dispatch(self, topic: SyncTopic, chat_id: str | None, payload: dict) -> None:
        """Broadcast a notification to other UI components."""
        await self._event_bus.publish(topic, chat_id, payload)

    # Chat switching

    async def open_chat(self, chat_id: str) -> SyncResult:
        """Activate a chat, load its history and zero its unread count."""
        previous = self._active_chat_id
        if previous is not None and previous != chat_id:
            self._deactivate(previous)

        self._active_chat_id = chat_id
        self._chats.setdefault(chat_id, Chat(id=chat_id))
        if chat_id not in self._scroll:
            self._scroll[chat_id] = ScrollPolicy(
                near_bottom_px=self._settings.near_bottom_px,
                settle_seconds=self._settings.scroll_settle_seconds,
            )
        if chat_id not in self._chat_unsubscribe:
            self._chat_unsubscribe[chat_id] = self._transport.subscribe(
                chat_id, self.on_push
            )

        logger.info("Opening chat %s", chat_id)
        self._states[chat_id] = ChatState.LOADING
        self._unread.reset(chat_id)
        await self._publish_unread(chat_id)

        prior_count = self._store.count(chat_id)
        result = await self._pull_once(chat_id)

        if self._active_chat_id != chat_id:
            await self._trace(
                "stale_response_discarded",
                {"chat_id": chat_id, "operation": "open_chat"},
            )
            return result

        if not result.success:
            self._states[chat_id] = (
                ChatState.READY if self._store.count(chat_id) else ChatState.IDLE
            )
            return result

        # Pushes that landed while the fetch was in flight
        self._unread.reset(chat_id)
        self._states[chat_id] = ChatState.READY

        policy = self._scroll[chat_id]
        if ScrollPolicy.should_auto_scroll(
            policy.state, ScrollTrigger.INITIAL_LOAD, prior_count
        ):
            await self._request_scroll(chat_id, ScrollTrigger.INITIAL_LOAD)

        await self._mark_read(chat_id)
        await self._publish_unread(chat_id)
        return SyncResult.ok(self._store.get_ordered(chat_id))

    async def close_chat(self) -> None:
        """Navigate away from the active chat; its history stays in the store."""
        if self._active_chat_id is None:
            return
        self._deactivate(self._active_chat_id)
        self._active_chat_id = None

    def _deactivate(self, chat_id: str) -> None:
        unsubscribe = self._chat_unsubscribe.pop(chat_id, None)
        if unsubscribe:
            unsubscribe()

        policy = self._scroll.pop(chat_id, None)
        if policy:
            policy.cancel()

        self._states[chat_id] = ChatState.IDLE
        logger.debug("Deactivated chat %s", chat_id)

    # Push path

    async def on_push(self, message: Message) -> list[Message]:
        """Apply a pushed message to whichever chat it belongs to."""
        if not isinstance(message, Message):
            logger.warning("Ignoring push of type %s", type(message).__name__)
            return []

        chat_id = message.chat_id
        before = self._store.version(chat_id)
        new = self._store.merge(chat_id, [message])

        if not new:
            if self._store.version(chat_id) != before:
                # Confirmed our own pending entry
                await self._publish_messages(chat_id, [])
                return []
            logger.debug("Duplicate delivery of %s in chat %s", message.id, chat_id)
            await self._trace(
                "duplicate_delivery_conflict",
                {"chat_id": chat_id, "message_id": message.id, "source": "push"},
            )
            return []

        self._touch_chat(chat_id, new)

        if chat_id == self._active_chat_id:
            previous_state = self.state(chat_id)
            self._states[chat_id] = ChatState.RECEIVING
            policy = self._scroll.get(chat_id)
            state = policy.state if policy else ScrollState()
            if ScrollPolicy.should_auto_scroll(state, ScrollTrigger.REMOTE_ARRIVED):
                await self._request_scroll(chat_id, ScrollTrigger.REMOTE_ARRIVED)
            if self._states.get(chat_id) is ChatState.RECEIVING:
                self._states[chat_id] = previous_state
        else:
            inbound = [m for m in new if m.user_id != self._current_user_id]
            if inbound:
                self._unread.increment(chat_id, len(inbound))
                await self._publish_unread(chat_id)

        await self._publish_messages(chat_id, new)
        return new

    # Send path

    async def send_message(
        self,
        chat_id: str,
        content: str,
        attachments: Sequence[AttachmentFile] = (),
    ) -> SyncResult:
        """
        Send a message with optimistic local echo.

        Returns:
            SyncResult with the confirmed message on success, or the failed
            local entry plus an error string; the UI keeps the input on failure.
        """
        content = (content or "").strip()
        if not content and not attachments:
            return SyncResult.fail("Message content is required")

        if chat_id in self._sending:
            await self._trace("send_rejected", {"chat_id": chat_id, "reason": "in_flight"})
            return SyncResult.fail("A message is already being sent in this chat")

        draft = MessageDraft(
            user_id=self._current_user_id,
            content=content,
            attachments=[f.describe() for f in attachments],
        )
        # Claimed before the first await so a double submit is rejected
        self._sending.add(chat_id)
        try:
            local_id = self._store.append_optimistic(chat_id, draft)
            if attachments:
                self._outbox[local_id] = list(attachments)

            await self._publish_messages(chat_id, [])
            return await self._deliver(chat_id, local_id, content, list(attachments))
        finally:
            self._sending.discard(chat_id)

    async def retry_send(self, chat_id: str, local_id: str) -> SyncResult:
        """Explicit user retry of a failed message (same local entry)."""
        if chat_id in self._sending:
            return SyncResult.fail("A message is already being sent in this chat")

        try:
            pending = self._store.retry_optimistic(chat_id, local_id)
        except UnknownChatError as e:
            return SyncResult.fail(str(e), status_code=404)

        self._sending.add(chat_id)
        try:
            await self._publish_messages(chat_id, [])
            files = self._outbox.get(local_id, [])
            return await self._deliver(chat_id, local_id, pending.content, files)
        finally:
            self._sending.discard(chat_id)

    async def discard_failed(self, chat_id: str, local_id: str) -> bool:
        """Drop a failed message the user gave up on."""
        removed = self._store.discard(chat_id, local_id)
        if removed:
            self._outbox.pop(local_id, None)
            await self._publish_messages(chat_id, [])
        return removed

    async def _deliver(
        self,
        chat_id: str,
        local_id: str,
        content: str,
        files: list[AttachmentFile],
    ) -> SyncResult:
        self._states[chat_id] = ChatState.SENDING

        if chat_id == self._active_chat_id and ScrollPolicy.should_auto_scroll(
            self.scroll_state(chat_id), ScrollTrigger.USER_SENT
        ):
            await self._request_scroll(chat_id, ScrollTrigger.USER_SENT)

        try:
            server_message = await self._transport.send_message(chat_id, content, files)
        except TransportError as e:
            failed = self._store.fail_optimistic(chat_id, local_id)
            logger.warning(
                "Send failed in chat %s: %s",
                chat_id,
                e,
                extra={"context": {"chat_id": chat_id, "local_id": local_id}},
            )
            await self._trace(
                "send_failed",
                {"chat_id": chat_id, "local_id": local_id, "error": str(e)},
            )
            await self._event_bus.publish(
                SyncTopic.STATUS,
                chat_id,
                {"level": "error", "message": f"Message not sent: {e}", "local_id": local_id},
            )
            await self._publish_messages(chat_id, [])
            return SyncResult.fail(str(e), data=failed, status_code=e.status_code)
        finally:
            if self._states.get(chat_id) is ChatState.SENDING:
                self._states[chat_id] = ChatState.READY

        if server_message is None:
            # Accepted without an echo; the pull adopts the pending entry
            await self.reconcile(chat_id, force=True)
            self._outbox.pop(local_id, None)
            entry = next(
                (m for m in self._store.get_ordered(chat_id) if m.local_id == local_id),
                None,
            )
            if entry is not None and entry.status is MessageStatus.CONFIRMED:
                return SyncResult.ok(entry)

            # The pull did not carry a matching copy (e.g. the server rewrote it)
            unconfirmed = self._store.fail_optimistic(chat_id, local_id) or entry
            logger.warning(
                "Send in chat %s accepted but not confirmed",
                chat_id,
                extra={"context": {"chat_id": chat_id, "local_id": local_id}},
            )
            await self._trace("send_unconfirmed", {"chat_id": chat_id, "local_id": local_id})
            await self._publish_messages(chat_id, [])
            return SyncResult.fail(
                "Message was accepted but not confirmed by the server", data=unconfirmed
            )

        confirmed = self._store.resolve_optimistic(chat_id, local_id, server_message)
        if confirmed.status is MessageStatus.FAILED:
            await self._publish_messages(chat_id, [])
            return SyncResult.fail("Server returned an invalid message", data=confirmed)

        self._outbox.pop(local_id, None)
        self._touch_chat(chat_id, [confirmed])
        await self._publish_messages(chat_id, [confirmed])
        return SyncResult.ok(confirmed)

    # Pull path

    async def reconcile(self, chat_id: str | None = None, force: bool = False) -> SyncResult:
        """
        Pull a chat's full message list and merge it.

        A forced pull joins one already in flight instead of overlapping it;
        an unforced pull is also skipped inside the reconcile interval.
        """
        chat_id = chat_id or self._active_chat_id
        if chat_id is None:
            return SyncResult.fail("No active chat")

        in_flight = self._pulls.get(chat_id)
        if in_flight is not None and not in_flight.done() and not force:
            await self._trace("pull_skipped", {"chat_id": chat_id, "reason": "in_flight"})
            return SyncResult.ok([])

        if not force and in_flight is None:
            last = self._last_pull.get(chat_id)
            now = asyncio.get_running_loop().time()
            if last is not None and now - last < self._settings.reconcile_interval_seconds:
                logger.debug("Throttling pull for chat %s", chat_id)
                return SyncResult.ok([])

        result = await self._pull_once(chat_id)

        if result.success and chat_id == self._active_chat_id:
            inbound = [m for m in result.data if m.user_id != self._current_user_id]
            if inbound and ScrollPolicy.should_auto_scroll(
                self.scroll_state(chat_id), ScrollTrigger.REMOTE_ARRIVED
            ):
                await self._request_scroll(chat_id, ScrollTrigger.REMOTE_ARRIVED)
            await self._mark_read(chat_id)
        return result

    async def _pull_once(self, chat_id: str) -> SyncResult:
        in_flight = self._pulls.get(chat_id)
        if in_flight is not None and not in_flight.done():
            return await in_flight

        task = asyncio.create_task(self._pull(chat_id))
        self._pulls[chat_id] = task
        try:
            return await task
        finally:
            if self._pulls.get(chat_id) is task:
                del self._pulls[chat_id]

    async def _pull(self, chat_id: str) -> SyncResult:
        self._last_pull[chat_id] = asyncio.get_running_loop().time()
        try:
            messages = await self._transport.fetch_messages(chat_id)
        except TransportError as e:
            logger.warning("Pull failed for chat %s: %s", chat_id, e)
            await self._trace("pull_failed", {"chat_id": chat_id, "error": str(e)})
            await self._event_bus.publish(
                SyncTopic.STATUS,
                chat_id,
                {"level": "warning", "message": f"Could not refresh messages: {e}"},
            )
            return SyncResult.fail(str(e), status_code=e.status_code)

        before = self._store.version(chat_id)
        new = self._store.merge(chat_id, messages)
        self._touch_chat(chat_id, new)
        if self._store.version(chat_id) != before:
            await self._publish_messages(chat_id, new)
        return SyncResult.ok(new)

    async def _reconcile_loop(self) -> None:
        """Periodic safety-net pull of the active chat."""
        while self._running:
            try:
                await asyncio.sleep(self._settings.reconcile_interval_seconds)
                if self._active_chat_id is not None:
                    await self.reconcile(self._active_chat_id)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Reconcile loop error: %s", e, exc_info=True)

    # Chat list and unread counts

    async def load_chats(self) -> SyncResult:
        """Fetch the user's chats and merge them into the local chat list."""
        try:
            chats = await self._transport.fetch_chats()
        except TransportError as e:
            logger.warning("Could not load chats: %s", e)
            await self._event_bus.publish(
                SyncTopic.STATUS, None, {"level": "warning", "message": str(e)}
            )
            return SyncResult.fail(str(e), status_code=e.status_code)

        for chat in chats:
            existing = self._chats.get(chat.id)
            if existing is None:
                self._chats[chat.id] = chat
                continue
            existing.is_group = chat.is_group
            existing.participants = chat.participants
            existing.name = chat.name or existing.name
            if chat.last_message_at:
                existing.touch(chat.last_message_at)

        return SyncResult.ok(self.list_chats())

    def list_chats(self, is_group: bool | None = None) -> list[Chat]:
        """Chats newest-activity first, optionally only group or private ones."""
        chats = [
            c for c in self._chats.values() if is_group is None or c.is_group == is_group
        ]
        dated = sorted(
            (c for c in chats if c.last_message_at), key=lambda c: c.last_message_at, reverse=True
        )
        undated = [c for c in chats if not c.last_message_at]
        return dated + undated

    async def refresh_unread_counts(self) -> SyncResult:
        """Seed unread counts from the server (the active chat stays at 0)."""
        try:
            counts = await self._transport.fetch_unread_counts()
        except TransportError as e:
            logger.warning("Could not fetch unread counts: %s", e)
            return SyncResult.fail(str(e), status_code=e.status_code)

        if self._active_chat_id in counts:
            counts[self._active_chat_id] = 0
        self._unread.set_counts(counts)
        await self._event_bus.publish(
            SyncTopic.UNREAD, None, {"counts": self._unread.snapshot(), "total": self._unread.total()}
        )
        return SyncResult.ok(self._unread.snapshot())

    # Scroll

    def update_scroll(self, chat_id: str, metrics: ContainerMetrics) -> ScrollState:
        """Feed a scroll/resize event of an open chat to its ScrollPolicy."""
        policy = self._scroll.get(chat_id)
        if policy is None:
            return ScrollPolicy(
                near_bottom_px=self._settings.near_bottom_px,
                settle_seconds=self._settings.scroll_settle_seconds,
            ).recompute(metrics)
        return policy.on_scroll(metrics)

    # Helpers

    def _touch_chat(self, chat_id: str, messages: list[Message]) -> None:
        chat = self._chats.setdefault(chat_id, Chat(id=chat_id))
        for message in messages:
            chat.touch(message.created_at)

    async def _mark_read(self, chat_id: str) -> None:
        try:
            await self._transport.mark_read(chat_id)
        except TransportError as e:
            logger.warning("Failed to mark chat %s as read: %s", chat_id, e)

    async def _request_scroll(self, chat_id: str, trigger: ScrollTrigger) -> None:
        behavior = "auto" if trigger is ScrollTrigger.INITIAL_LOAD else "smooth"
        await self._event_bus.publish(
            SyncTopic.SCROLL, chat_id, {"trigger": trigger.value, "behavior": behavior}
        )

    async def _publish_messages(self, chat_id: str, new: list[Message]) -> None:
        await self._event_bus.publish(
            SyncTopic.MESSAGES,
            chat_id,
            {
                "new_message_ids": [m.id for m in new],
                "count": self._store.count(chat_id),
            },
        )

    async def _publish_unread(self, chat_id: str) -> None:
        await self._event_bus.publish(
            SyncTopic.UNREAD,
            chat_id,
            {"count": self._unread.get(chat_id), "total": self._unread.total()},
        )

    async def _trace(self, event_type: str, data: dict) -> None:
        if self._tracker is None:
            return
        try:
            await self._tracker.track(event_type=event_type, actor=ACTOR, data=data)
        except Exception as e:
            logger.error("Failed to record %s: %s", event_type, e)
