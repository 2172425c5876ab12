"""Tests for configuration and logging helpers."""

import json
import logging
from pathlib import Path

from chatsync.config import (
    DEFAULT_NEAR_BOTTOM_PX,
    PROJECT_ROOT,
    SyncSettings,
    resolve_db_path,
)
from chatsync.logging_config import JSONFormatter, build_logging_config


class TestSyncSettings:
    """Tests for SyncSettings.from_env()."""

    def test_defaults(self, monkeypatch):
        for name in (
            "CHAT_USER_ID",
            "CHAT_NEAR_BOTTOM_PX",
            "CHAT_API_URL",
            "CHATSYNC_STRICT",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = SyncSettings.from_env()

        assert settings.current_user_id == "me"
        assert settings.near_bottom_px == DEFAULT_NEAR_BOTTOM_PX
        assert settings.api_url is None
        assert settings.strict is False

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("CHAT_USER_ID", "42")
        monkeypatch.setenv("CHAT_NEAR_BOTTOM_PX", "100")
        monkeypatch.setenv("CHAT_SCROLL_SETTLE_SECONDS", "0.5")
        monkeypatch.setenv("CHAT_RECONCILE_INTERVAL_SECONDS", "10")
        monkeypatch.setenv("CHATSYNC_STRICT", "true")
        monkeypatch.setenv("CHAT_API_URL", "http://chat.example/api")
        monkeypatch.setenv("CHAT_ADOPTION_SKEW_SECONDS", "15")

        settings = SyncSettings.from_env()

        assert settings.current_user_id == "42"
        assert settings.near_bottom_px == 100
        assert settings.scroll_settle_seconds == 0.5
        assert settings.reconcile_interval_seconds == 10.0
        assert settings.strict is True
        assert settings.api_url == "http://chat.example/api"
        assert settings.adoption_skew_seconds == 15.0


class TestResolveDbPath:
    def test_memory(self):
        assert resolve_db_path(":memory:") == ":memory:"

    def test_relative_is_anchored_at_project_root(self):
        assert resolve_db_path("03_data/x.db") == PROJECT_ROOT / "03_data/x.db"

    def test_absolute_kept(self, tmp_path):
        assert resolve_db_path(tmp_path / "x.db") == Path(tmp_path / "x.db")


class TestJSONFormatter:
    def test_context_is_included(self):
        """Test that extra={"context": ...} lands in the JSON line."""
        record = logging.LogRecord(
            name="chatsync.sync",
            level=logging.WARNING,
            pathname=__file__,
            lineno=1,
            msg="Send failed in chat %s",
            args=("c1",),
            exc_info=None,
        )
        record.context = {"chat_id": "c1"}

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "Send failed in chat c1"
        assert data["level"] == "WARNING"
        assert data["context"] == {"chat_id": "c1"}
        assert data["chat_id"] == "c1"


class TestLoggingConfig:
    def test_chat_id_is_promoted(self):
        record = logging.LogRecord(
            "chatsync.store", logging.INFO, __file__, 1, "merged", None, None
        )
        record.context = {"chat_id": "c9", "count": 3}

        data = json.loads(JSONFormatter().format(record))

        assert data["chat_id"] == "c9"
        assert "local_id" not in data

    def test_transport_loggers_quieted(self, tmp_path):
        config = build_logging_config("info", tmp_path / "app.log")

        assert config["root"]["level"] == "INFO"
        assert config["loggers"]["httpx"]["level"] == "WARNING"
        assert config["handlers"]["file"]["filename"] == str(tmp_path / "app.log")

    def test_debug_keeps_transport_loggers_verbose(self, tmp_path):
        config = build_logging_config("DEBUG", tmp_path / "app.log")

        assert config["loggers"]["httpx"]["level"] == "DEBUG"
