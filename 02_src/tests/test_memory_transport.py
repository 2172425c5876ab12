"""Tests for InMemoryChatServer."""

import pytest

from chatsync.errors import TransportError


class TestPosting:
    """Tests for remote posts and push delivery."""

    async def test_post_pushes_to_chat_and_inbox(self, server):
        chat_calls, inbox_calls = [], []

        async def on_chat(message):
            chat_calls.append(message)

        async def on_inbox(message):
            inbox_calls.append(message)

        server.subscribe("c1", on_chat)
        server.subscribe_inbox(on_inbox)

        message = await server.post_message("c1", "alice", "hi")

        assert chat_calls == [message]
        assert inbox_calls == [message]

    async def test_post_without_push(self, server):
        calls = []

        async def on_inbox(message):
            calls.append(message)

        server.subscribe_inbox(on_inbox)

        await server.post_message("c1", "alice", "hi", push=False)

        assert calls == []
        assert len(server.messages("c1")) == 1

    async def test_timestamps_strictly_increase(self, server):
        first = await server.post_message("c1", "alice", "a", push=False)
        second = await server.post_message("c1", "alice", "b", push=False)

        assert second.created_at > first.created_at
        assert int(second.id) > int(first.id)

    async def test_failing_handler_does_not_block_others(self, server):
        calls = []

        async def broken(message):
            raise RuntimeError("boom")

        async def healthy(message):
            calls.append(message)

        server.subscribe("c1", broken)
        server.subscribe_inbox(healthy)

        await server.post_message("c1", "alice", "hi")

        assert len(calls) == 1


class TestSend:
    """Tests for the current user's sends."""

    async def test_send_not_echoed_by_default(self, server):
        calls = []

        async def on_chat(message):
            calls.append(message)

        server.subscribe("c1", on_chat)

        message = await server.send_message("c1", "hi")

        assert message.user_id == "me"
        assert calls == []

    async def test_send_echoed_when_enabled(self, server):
        calls = []

        async def on_chat(message):
            calls.append(message)

        server.subscribe("c1", on_chat)
        server.echo_to_sender = True

        message = await server.send_message("c1", "hi")

        assert calls == [message]

    async def test_fail_next(self, server):
        server.fail_next()

        with pytest.raises(TransportError) as exc_info:
            await server.send_message("c1", "hi")

        assert exc_info.value.status_code == 503
        assert (await server.send_message("c1", "hi")).content == "hi"

    async def test_unknown_chat(self, server):
        with pytest.raises(TransportError) as exc_info:
            await server.fetch_messages("missing")

        assert exc_info.value.status_code == 404


class TestUnreadCounts:
    """Tests for server-side unread counts."""

    async def test_counts_messages_after_read_mark(self, server):
        await server.post_message("c1", "alice", "a", push=False)
        await server.mark_read("c1")
        await server.post_message("c1", "alice", "b", push=False)
        await server.post_message("c1", "me", "c", push=False)
        await server.post_message("c2", "bob", "d", push=False)

        counts = await server.fetch_unread_counts()

        assert counts == {"c1": 1, "c2": 1}


class TestSubscriptions:
    async def test_unsubscribe_is_idempotent(self, server):
        async def on_chat(message):
            pass

        unsubscribe = server.subscribe("c1", on_chat)
        unsubscribe()
        unsubscribe()

        assert server.subscriber_count("c1") == 0

    async def test_close_drops_handlers(self, server):
        async def on_chat(message):
            pass

        server.subscribe("c1", on_chat)
        await server.close()

        assert server.subscriber_count("c1") == 0
