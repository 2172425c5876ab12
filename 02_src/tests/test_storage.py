"""Tests for Storage."""

from datetime import datetime, timedelta, timezone

import pytest

from chatsync.models import TraceEvent
from chatsync.storage import Storage

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _event(event_id: str, event_type: str = "pull_failed", seconds: int = 0, **data):
    return TraceEvent(
        id=event_id,
        event_type=event_type,
        actor="chat_sync",
        data=data,
        timestamp=T0 + timedelta(seconds=seconds),
    )


class TestStorageInit:
    """Tests for Storage initialization."""

    async def test_init_creates_tables(self, storage):
        """Test that init creates the trace table."""
        async with storage._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ) as cursor:
            tables = [row[0] for row in await cursor.fetchall()]
            assert "trace_events" in tables

    async def test_init_creates_parent_directory(self, tmp_path):
        """Test that a file database gets its directory created."""
        db_path = tmp_path / "nested" / "trace.db"
        st = Storage(db_path)
        await st.init()
        await st.close()

        assert db_path.exists()

    async def test_uninitialized_storage_raises(self):
        st = Storage(":memory:")

        with pytest.raises(RuntimeError, match="not initialized"):
            await st.get_trace_events()


class TestStorageTraceEvents:
    """Tests for TraceEvent storage."""

    async def test_save_and_read_back(self, storage):
        """Test that a saved event round-trips its data."""
        await storage.save_trace_event(_event("e1", chat_id="c1", error="timeout"))

        events = await storage.get_trace_events()

        assert len(events) == 1
        assert events[0].id == "e1"
        assert events[0].data == {"chat_id": "c1", "error": "timeout"}
        assert events[0].timestamp == T0

    async def test_newest_first(self, storage):
        await storage.save_trace_event(_event("e1", seconds=1))
        await storage.save_trace_event(_event("e2", seconds=2))

        events = await storage.get_trace_events()

        assert [e.id for e in events] == ["e2", "e1"]

    async def test_filter_by_event_type(self, storage):
        await storage.save_trace_event(_event("e1", event_type="send_failed"))
        await storage.save_trace_event(_event("e2", event_type="pull_failed"))

        events = await storage.get_trace_events(event_types=["send_failed"])

        assert [e.id for e in events] == ["e1"]

    async def test_filter_by_chat_id(self, storage):
        """Test that the chat_id column is populated from the event data."""
        await storage.save_trace_event(_event("e1", chat_id="c1"))
        await storage.save_trace_event(_event("e2", chat_id="c2"))
        await storage.save_trace_event(_event("e3"))

        events = await storage.get_trace_events(chat_id="c2")

        assert [e.id for e in events] == ["e2"]

    async def test_filter_after(self, storage):
        await storage.save_trace_event(_event("e1", seconds=1))
        await storage.save_trace_event(_event("e2", seconds=5))

        events = await storage.get_trace_events(after=T0 + timedelta(seconds=2))

        assert [e.id for e in events] == ["e2"]

    async def test_limit(self, storage):
        for i in range(5):
            await storage.save_trace_event(_event(f"e{i}", seconds=i))

        events = await storage.get_trace_events(limit=2)

        assert [e.id for e in events] == ["e4", "e3"]


class TestTraceEventCounts:
    async def test_counts_per_event_type(self, storage):
        await storage.save_trace_event(_event("e1", event_type="send_failed", chat_id="c1"))
        await storage.save_trace_event(_event("e2", event_type="send_failed", chat_id="c2"))
        await storage.save_trace_event(_event("e3", event_type="pull_failed", chat_id="c1"))

        assert await storage.count_trace_events() == {"send_failed": 2, "pull_failed": 1}

    async def test_counts_for_one_chat(self, storage):
        await storage.save_trace_event(_event("e1", event_type="send_failed", chat_id="c1"))
        await storage.save_trace_event(_event("e2", event_type="send_failed", chat_id="c2"))

        assert await storage.count_trace_events(chat_id="c1") == {"send_failed": 1}

    async def test_empty(self, storage):
        assert await storage.count_trace_events() == {}


class TestStorageClear:
    """Tests for clearing storage."""

    async def test_clear_all_data(self, storage):
        """Test clearing all data."""
        await storage.save_trace_event(_event("e1"))

        await storage.clear()

        async with storage._conn.execute("SELECT COUNT(*) FROM trace_events") as cursor:
            count = await cursor.fetchone()
            assert count[0] == 0
