from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

from .. import db
from ..event_kinds import (
    EventDetail,
    categorize_event,
    derive_event_type,
    detail_to_dict,
    parse_detail,
)
from .types import SessionEvent

if TYPE_CHECKING:
    from ._store import MemoryStore


def _row_to_event(row: sqlite3.Row) -> SessionEvent:
    return SessionEvent(
        event_id=row["event_id"],
        session_id=row["session_id"],
        timestamp=row["timestamp"],
        event_type=row["event_type"],
        category=row["category"],
        detail=parse_detail(db.from_json(row["detail_json"])),
    )


def insert_event(store: MemoryStore, session_id: str, detail: EventDetail) -> SessionEvent:
    # Type and category come from the payload, never from the caller.
    event_type = derive_event_type(detail)
    event = SessionEvent(
        event_id=store.new_id(),
        session_id=session_id,
        timestamp=store.now_iso(),
        event_type=event_type,
        category=categorize_event(event_type),
        detail=detail,
    )
    store.conn.execute(
        """
        INSERT INTO session_events(event_id, session_id, timestamp, event_type, category, detail_json)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            event.event_id,
            event.session_id,
            event.timestamp,
            event.event_type,
            event.category,
            db.to_json(detail_to_dict(detail)),
        ),
    )
    store.commit()
    return event


def get_event(store: MemoryStore, event_id: str) -> SessionEvent | None:
    row = store.conn.execute(
        "SELECT * FROM session_events WHERE event_id = ?", (event_id,)
    ).fetchone()
    return _row_to_event(row) if row else None


def session_events(
    store: MemoryStore,
    session_id: str,
    *,
    event_type: str | None = None,
) -> list[SessionEvent]:
    """Events of one session in causal order."""

    if event_type:
        rows = store.conn.execute(
            """
            SELECT * FROM session_events
            WHERE session_id = ? AND event_type = ?
            ORDER BY timestamp ASC, rowid ASC
            """,
            (session_id, event_type),
        ).fetchall()
    else:
        rows = store.conn.execute(
            """
            SELECT * FROM session_events
            WHERE session_id = ?
            ORDER BY timestamp ASC, rowid ASC
            """,
            (session_id,),
        ).fetchall()
    return [_row_to_event(row) for row in rows]


def recent_events(
    store: MemoryStore,
    project_path: str,
    event_type: str,
    *,
    limit: int = 20,
) -> list[SessionEvent]:
    rows = store.conn.execute(
        """
        SELECT e.* FROM session_events e
        JOIN sessions s ON e.session_id = s.session_id
        WHERE s.project_path = ? AND e.event_type = ?
        ORDER BY e.timestamp DESC, e.rowid DESC
        LIMIT ?
        """,
        (project_path, event_type, int(limit)),
    ).fetchall()
    return [_row_to_event(row) for row in rows]
