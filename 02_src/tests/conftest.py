"""Pytest configuration and fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_message():
    """Factory for confirmed messages with deterministic timestamps."""
    from chatsync.models import Message

    def factory(
        message_id: str,
        chat_id: str = "c1",
        user_id: str = "u2",
        content: str | None = None,
        offset: int | None = None,
        created_at: datetime | None = None,
        **kwargs,
    ) -> Message:
        if created_at is None:
            seconds = offset if offset is not None else int(message_id)
            created_at = BASE_TIME + timedelta(seconds=seconds)
        return Message(
            id=message_id,
            chat_id=chat_id,
            user_id=user_id,
            content=content if content is not None else f"message {message_id}",
            created_at=created_at,
            **kwargs,
        )

    return factory


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from chatsync.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def event_bus():
    """Create SyncEventBus."""
    from chatsync.event_bus import SyncEventBus

    return SyncEventBus()


@pytest.fixture
def tracker(storage, event_bus):
    """Create Tracker with storage and event bus."""
    from chatsync.tracker import Tracker

    return Tracker(event_bus=event_bus, storage=storage)


@pytest.fixture
def server():
    """In-memory backend with one private and one group chat."""
    from chatsync.transport import InMemoryChatServer

    srv = InMemoryChatServer(current_user_id="me")
    srv.create_chat("c1", participants=["alice"], name="Alice")
    srv.create_chat("c2", is_group=True, participants=["alice", "bob"], name="Course")
    return srv


@pytest.fixture
def settings():
    """Sync settings with timers short enough for tests."""
    from chatsync.config import SyncSettings

    return SyncSettings(
        current_user_id="me",
        scroll_settle_seconds=0.05,
        reconcile_interval_seconds=30.0,
    )


@pytest_asyncio.fixture
async def controller(server, event_bus, tracker, settings):
    """Started ChatSyncController wired to the in-memory backend."""
    from chatsync.sync import ChatSyncController

    ctrl = ChatSyncController(
        transport=server,
        current_user_id="me",
        event_bus=event_bus,
        tracker=tracker,
        settings=settings,
    )
    await ctrl.start()
    yield ctrl
    await ctrl.stop()


@pytest.fixture
def published(event_bus):
    """Record every SyncEvent published on the bus, in order."""
    from chatsync.models import SyncTopic

    events = []

    async def record(event):
        events.append(event)

    for topic in SyncTopic:
        event_bus.subscribe(topic, record)
    return events
