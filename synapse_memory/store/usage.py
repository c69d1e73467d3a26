from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Any

from .knowledge import increment_usage_count
from .types import KnowledgeUsage

if TYPE_CHECKING:
    from ._store import MemoryStore

USAGE_TYPES = ("surfaced", "recalled", "applied")


def _row_to_usage(row: sqlite3.Row) -> KnowledgeUsage:
    return KnowledgeUsage(
        usage_id=row["usage_id"],
        knowledge_id=row["knowledge_id"],
        session_id=row["session_id"],
        usage_type=row["usage_type"],
        timestamp=row["timestamp"],
    )


def record_knowledge_usage(
    store: MemoryStore,
    knowledge_id: str,
    session_id: str,
    usage_type: str,
) -> KnowledgeUsage:
    if usage_type not in USAGE_TYPES:
        raise ValueError(
            f"Invalid usage type '{usage_type}'. Allowed types: {', '.join(USAGE_TYPES)}"
        )
    usage = KnowledgeUsage(
        usage_id=store.new_id(),
        knowledge_id=knowledge_id,
        session_id=session_id,
        usage_type=usage_type,
        timestamp=store.now_iso(),
    )
    with store.transaction():
        store.conn.execute(
            """
            INSERT INTO knowledge_usage(usage_id, knowledge_id, session_id, usage_type, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                usage.usage_id,
                usage.knowledge_id,
                usage.session_id,
                usage.usage_type,
                usage.timestamp,
            ),
        )
        increment_usage_count(store, knowledge_id)
    return usage


def knowledge_usage_history(
    store: MemoryStore, knowledge_id: str, *, limit: int = 50
) -> list[KnowledgeUsage]:
    rows = store.conn.execute(
        """
        SELECT * FROM knowledge_usage
        WHERE knowledge_id = ?
        ORDER BY timestamp DESC, rowid DESC
        LIMIT ?
        """,
        (knowledge_id, int(limit)),
    ).fetchall()
    return [_row_to_usage(row) for row in rows]


def session_knowledge_usage(store: MemoryStore, session_id: str) -> list[KnowledgeUsage]:
    rows = store.conn.execute(
        """
        SELECT * FROM knowledge_usage
        WHERE session_id = ?
        ORDER BY timestamp ASC, rowid ASC
        """,
        (session_id,),
    ).fetchall()
    return [_row_to_usage(row) for row in rows]


def usage_counts_by_type(
    store: MemoryStore, project_path: str, *, since: str | None = None
) -> dict[str, int]:
    since_clause = "AND ku.timestamp >= ?" if since else ""
    params: list[Any] = [project_path]
    if since:
        params.append(since)
    counts = {usage_type: 0 for usage_type in USAGE_TYPES}
    for row in store.conn.execute(
        f"""
        SELECT ku.usage_type AS usage_type, COUNT(*) AS count
        FROM knowledge_usage ku
        JOIN promoted_knowledge pk ON ku.knowledge_id = pk.knowledge_id
        WHERE pk.project_path = ? {since_clause}
        GROUP BY ku.usage_type
        """,
        params,
    ).fetchall():
        counts[row["usage_type"]] = int(row["count"])
    return counts
