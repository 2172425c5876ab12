"""SQLite journal of sync decisions (trace events)."""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import TraceEvent

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


class IStorage(Protocol):
    """Persistent trace journal (SQLite)."""

    async def init(self) -> None:
        """Open the database and apply the schema."""
        ...

    async def close(self) -> None:
        ...

    async def save_trace_event(self, event: TraceEvent) -> None:
        ...

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        chat_id: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Newest first."""
        ...

    async def count_trace_events(self, chat_id: str | None = None) -> dict[str, int]:
        """Number of trace events per event type."""
        ...

    async def clear(self) -> None:
        ...


def _where(
    after: datetime | None,
    event_types: list[str] | None,
    actor: str | None,
    chat_id: str | None,
) -> tuple[str, list[Any]]:
    conditions: list[str] = []
    params: list[Any] = []

    if after:
        if after.tzinfo is None:
            after = after.replace(tzinfo=timezone.utc)
        conditions.append("timestamp > ?")
        params.append(after.isoformat())
    if event_types:
        conditions.append(f"event_type IN ({','.join('?' * len(event_types))})")
        params.extend(event_types)
    if actor:
        conditions.append("actor = ?")
        params.append(actor)
    if chat_id:
        conditions.append("chat_id = ?")
        params.append(chat_id)

    if not conditions:
        return "", params
    return "WHERE " + " AND ".join(conditions), params


def _row_to_event(row: tuple) -> TraceEvent:
    event_id, event_type, actor, data, timestamp = row
    return TraceEvent(
        id=event_id,
        event_type=event_type,
        actor=actor,
        data=json.loads(data),
        timestamp=datetime.fromisoformat(timestamp),
    )


class Storage:
    """aiosqlite-backed trace journal.

    Rows carry the chat id lifted out of ``data["chat_id"]`` so that the
    observability API can filter one conversation without decoding JSON.
    """

    def __init__(self, db_path: str | Path | None = None):
        self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(self._db_path)
        await self._conn.executescript(SCHEMA_PATH.read_text(encoding="utf-8"))
        await self._conn.commit()

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    async def save_trace_event(self, event: TraceEvent) -> None:
        conn = self._require_conn()
        await conn.execute(
            "INSERT INTO trace_events (id, event_type, actor, chat_id, data, timestamp) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                event.id or str(uuid.uuid4()),
                event.event_type,
                event.actor,
                event.data.get("chat_id"),
                json.dumps(event.data, default=str),
                event.timestamp.isoformat(),
            ),
        )
        await conn.commit()

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        chat_id: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Trace events matching every given filter, newest first."""
        conn = self._require_conn()
        where, params = _where(after, event_types, actor, chat_id)

        cursor = await conn.execute(
            "SELECT id, event_type, actor, data, timestamp FROM trace_events "
            f"{where} ORDER BY timestamp DESC, rowid DESC LIMIT ?",
            [*params, limit],
        )
        rows = await cursor.fetchall()
        return [_row_to_event(row) for row in rows]

    async def count_trace_events(self, chat_id: str | None = None) -> dict[str, int]:
        """Per-type totals, e.g. how many duplicate deliveries a chat saw."""
        conn = self._require_conn()
        where, params = _where(None, None, None, chat_id)

        cursor = await conn.execute(
            f"SELECT event_type, COUNT(*) FROM trace_events {where} GROUP BY event_type",
            params,
        )
        rows = await cursor.fetchall()
        return {event_type: count for event_type, count in rows}

    async def clear(self) -> None:
        conn = self._require_conn()
        await conn.execute("DELETE FROM trace_events")
        await conn.commit()
