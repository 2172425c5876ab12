"""Tests for Application."""

import pytest

from chatsync.app import Application
from chatsync.config import SyncSettings
from chatsync.transport import HttpChatTransport, InMemoryChatServer


def _settings(**overrides) -> SyncSettings:
    return SyncSettings(current_user_id="me", **overrides)


class TestApplicationStart:
    """Tests for Application.start()."""

    @pytest.mark.asyncio
    async def test_start_initializes_components(self):
        """Test that start initializes all components."""
        app = Application(db_path=":memory:", settings=_settings())
        await app.start()

        assert app._storage is not None
        assert app._event_bus is not None
        assert app._tracker is not None
        assert app._transport is not None
        assert app._controller is not None

        await app.stop()

    @pytest.mark.asyncio
    async def test_components_share_dependencies(self):
        """Test that components are wired to the same instances."""
        app = Application(db_path=":memory:", settings=_settings())
        await app.start()

        assert app._tracker._event_bus is app._event_bus
        assert app._tracker._storage is app._storage
        assert app.controller.event_bus is app._event_bus

        await app.stop()

    @pytest.mark.asyncio
    async def test_loopback_transport_without_api_url(self):
        """Test that the in-memory backend is used when no API is configured."""
        app = Application(db_path=":memory:", settings=_settings())
        await app.start()

        assert isinstance(app.transport, InMemoryChatServer)

        await app.stop()

    @pytest.mark.asyncio
    async def test_http_transport_with_api_url(self):
        """Test that CHAT_API_URL selects the HTTP transport."""
        app = Application(
            db_path=":memory:",
            settings=_settings(api_url="http://chat.example/api", api_token="t"),
        )
        await app.start()

        assert isinstance(app.transport, HttpChatTransport)

        await app.stop()

    @pytest.mark.asyncio
    async def test_start_creates_database_tables(self):
        """Test that start creates database tables."""
        app = Application(db_path=":memory:", settings=_settings())
        await app.start()

        async with app._storage._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ) as cursor:
            tables = [row[0] for row in await cursor.fetchall()]
            assert "trace_events" in tables

        await app.stop()


class TestApplicationStop:
    """Tests for Application.stop()."""

    @pytest.mark.asyncio
    async def test_stop_closes_storage(self):
        """Test that stop closes the database connection."""
        app = Application(db_path=":memory:", settings=_settings())
        await app.start()
        await app.stop()

        assert app._storage._conn is None


class TestApplicationReset:
    """Tests for Application.reset()."""

    @pytest.mark.asyncio
    async def test_reset_clears_state_and_keeps_working(self):
        """Test that reset clears local data and leaves the app usable."""
        server = InMemoryChatServer(current_user_id="me")
        server.create_chat("c1")
        app = Application(db_path=":memory:", settings=_settings(), transport=server)
        await app.start()

        await app.controller.open_chat("c1")
        await app.controller.send_message("c1", "hello")

        await app.reset()

        assert app.controller.store.count("c1") == 0
        assert await app.storage.get_trace_events() == []

        result = await app.controller.open_chat("c1")
        assert result.success
        assert app.controller.store.count("c1") == 1

        await app.stop()


class TestApplicationProperties:
    """Tests for Application properties."""

    @pytest.mark.asyncio
    async def test_controller_property(self):
        """Test controller property."""
        app = Application(db_path=":memory:", settings=_settings())
        await app.start()

        assert app.controller is app._controller

        await app.stop()

    @pytest.mark.parametrize("name", ["storage", "tracker", "transport", "controller"])
    def test_property_raises_when_not_started(self, name):
        """Test that component properties raise when not started."""
        app = Application(db_path=":memory:", settings=_settings())

        with pytest.raises(RuntimeError, match="not started"):
            getattr(app, name)
