"""JSON logging for the sync engine.

Every record is one JSON line. Sync code attaches the chat it is working on
through ``extra={"context": {"chat_id": ..., "local_id": ...}}``; those keys
are promoted to the top level so log shippers can index them directly.
"""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH

# Keys from the record context that are lifted next to "message"
INDEXED_CONTEXT_KEYS = ("chat_id", "local_id", "message_id")

# Chatty transport libraries, kept at WARNING unless LOG_LEVEL is DEBUG
QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            for key in INDEXED_CONTEXT_KEYS:
                if key in context:
                    entry[key] = context[key]
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def build_logging_config(log_level: str, log_file: str | Path) -> dict:
    """dictConfig mapping: rotating file plus stdout, both JSON."""
    level = log_level.upper()
    quiet_level = "DEBUG" if level == "DEBUG" else "WARNING"

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JSONFormatter},
        },
        "handlers": {
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": str(log_file),
                "maxBytes": 5 * 1024 * 1024,
                "backupCount": 3,
                "formatter": "json",
                "encoding": "utf-8",
            },
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {name: {"level": quiet_level} for name in QUIET_LOGGERS},
        "root": {"level": level, "handlers": ["file", "console"]},
    }


def setup_logging(log_level: str | None = None, log_file: str | None = None) -> None:
    """
    Configure process-wide logging.

    Args:
        log_level: DEBUG, INFO, ... Falls back to LOG_LEVEL, then INFO.
        log_file: Target file. Falls back to LOG_FILE, then 04_logs/app.log.
    """
    log_level = log_level or os.getenv("LOG_LEVEL", "INFO")
    log_path = Path(log_file or os.getenv("LOG_FILE") or DEFAULT_LOG_PATH)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(build_logging_config(log_level, log_path))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
