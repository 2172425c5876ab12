"""Tests for data models."""

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from chatsync.models import (
    Attachment,
    AttachmentFile,
    Chat,
    ContainerMetrics,
    Message,
    MessageStatus,
    SyncResult,
    new_local_id,
)

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestMessage:
    """Tests for Message model."""

    def test_defaults(self):
        """Test that a message is confirmed unless stated otherwise."""
        msg = Message(id="1", chat_id="c1", user_id="u1", content="hi", created_at=T0)

        assert msg.status is MessageStatus.CONFIRMED
        assert msg.is_confirmed
        assert msg.attachments == []
        assert msg.local_id is None

    def test_to_dict(self):
        msg = Message(
            id="1",
            chat_id="c1",
            user_id="u1",
            content="see attached",
            created_at=T0,
            attachments=[Attachment(id="a1", file_name="notes.pdf", file_size=10)],
            status=MessageStatus.PENDING,
            local_id="local-x",
        )

        data = msg.to_dict()

        assert data["status"] == "pending"
        assert data["created_at"] == T0.isoformat()
        assert data["attachments"] == [
            {"id": "a1", "file_name": "notes.pdf", "file_size": 10, "file_type": ""}
        ]


class TestAttachmentFile:
    """Tests for AttachmentFile model."""

    def test_describe(self):
        """Test the descriptor shown before upload completes."""
        f = AttachmentFile(file_name="a.png", content=b"1234", content_type="image/png")

        assert f.describe() == Attachment(
            id=None, file_name="a.png", file_size=4, file_type="image/png"
        )

    def test_attachment_is_frozen(self):
        attachment = Attachment(id="a1", file_name="x")

        with pytest.raises(FrozenInstanceError):
            attachment.file_name = "y"


class TestLocalId:
    def test_local_ids_are_unique_and_prefixed(self):
        first, second = new_local_id(), new_local_id()

        assert first != second
        assert first.startswith("local-")


class TestChat:
    """Tests for Chat model."""

    def test_touch_never_moves_backwards(self):
        chat = Chat(id="c1")
        chat.touch(T0 + timedelta(seconds=5))
        chat.touch(T0)

        assert chat.last_message_at == T0 + timedelta(seconds=5)

    def test_to_dict_sorts_participants(self):
        chat = Chat(id="c1", is_group=True, participants=frozenset({"b", "a"}))

        assert chat.to_dict()["participants"] == ["a", "b"]
        assert chat.to_dict()["last_message_at"] is None


class TestContainerMetrics:
    def test_distance_from_bottom(self):
        metrics = ContainerMetrics(scroll_top=300, scroll_height=1000, client_height=600)

        assert metrics.distance_from_bottom == 100


class TestSyncResult:
    """Tests for SyncResult."""

    def test_ok(self):
        result = SyncResult.ok([1])

        assert result.success is True
        assert result.data == [1]
        assert result.error is None

    def test_fail(self):
        result = SyncResult.fail("boom", status_code=503)

        assert result.success is False
        assert result.error == "boom"
        assert result.status_code == 503
