from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Any

from ..agent_identity import agent_display_name
from .types import AgentInfo

if TYPE_CHECKING:
    from ._store import MemoryStore


def _row_to_agent(row: sqlite3.Row) -> AgentInfo:
    return AgentInfo(
        agent_type=row["agent_type"],
        display_name=row["display_name"],
        first_seen_at=row["first_seen_at"],
        last_seen_at=row["last_seen_at"],
        total_sessions=int(row["total_sessions"]),
    )


def upsert_agent(store: MemoryStore, agent_type: str) -> AgentInfo:
    now = store.now_iso()
    store.conn.execute(
        """
        INSERT INTO agents(agent_type, display_name, first_seen_at, last_seen_at, total_sessions)
        VALUES (?, ?, ?, ?, 1)
        ON CONFLICT(agent_type) DO UPDATE SET
            last_seen_at = excluded.last_seen_at,
            total_sessions = total_sessions + 1
        """,
        (agent_type, agent_display_name(agent_type), now, now),
    )
    store.commit()
    agent = get_agent(store, agent_type)
    if agent is None:
        raise RuntimeError(f"Failed to register agent {agent_type}")
    return agent


def get_agent(store: MemoryStore, agent_type: str) -> AgentInfo | None:
    row = store.conn.execute(
        "SELECT * FROM agents WHERE agent_type = ?", (agent_type,)
    ).fetchone()
    return _row_to_agent(row) if row else None


def list_agents(store: MemoryStore) -> list[AgentInfo]:
    rows = store.conn.execute(
        "SELECT * FROM agents ORDER BY total_sessions DESC, agent_type ASC"
    ).fetchall()
    return [_row_to_agent(row) for row in rows]


def agent_stats(
    store: MemoryStore, project_path: str, *, since: str | None = None
) -> list[dict[str, Any]]:
    since_clause = "AND started_at >= ?" if since else ""
    params: list[Any] = [project_path]
    if since:
        params.append(since)
    rows = store.conn.execute(
        f"""
        SELECT agent_type, COUNT(*) AS session_count
        FROM sessions
        WHERE project_path = ? {since_clause}
        GROUP BY agent_type
        ORDER BY session_count DESC, agent_type ASC
        """,
        params,
    ).fetchall()
    return [
        {"agent_type": row["agent_type"], "session_count": int(row["session_count"])}
        for row in rows
    ]
