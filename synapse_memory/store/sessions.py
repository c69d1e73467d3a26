from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Any

from ..event_kinds import EVENT_CATEGORIES
from .types import Session, SessionMetrics
from .utils import contains_pattern, parse_iso8601

if TYPE_CHECKING:
    from ._store import MemoryStore


def _row_to_session(row: sqlite3.Row) -> Session:
    return Session(
        session_id=row["session_id"],
        project_path=row["project_path"],
        branch=row["branch"],
        started_at=row["started_at"],
        status=row["status"],
        ended_at=row["ended_at"],
        summary=row["summary"],
        git_commit_start=row["git_commit_start"],
        git_commit_end=row["git_commit_end"],
        agent_type=row["agent_type"],
        agent_version=row["agent_version"],
    )


def create_session(
    store: MemoryStore,
    *,
    project_path: str,
    branch: str,
    git_commit_start: str | None = None,
    agent_type: str = "unknown",
    agent_version: str | None = None,
) -> Session:
    session = Session(
        session_id=store.new_id(),
        project_path=project_path,
        branch=branch,
        started_at=store.now_iso(),
        status="active",
        git_commit_start=git_commit_start,
        agent_type=agent_type,
        agent_version=agent_version,
    )
    store.conn.execute(
        """
        INSERT INTO sessions(
            session_id, project_path, branch, started_at, status,
            git_commit_start, agent_type, agent_version
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            session.session_id,
            session.project_path,
            session.branch,
            session.started_at,
            session.status,
            session.git_commit_start,
            session.agent_type,
            session.agent_version,
        ),
    )
    store.commit()
    return session


def end_session(
    store: MemoryStore,
    session_id: str,
    *,
    summary: str | None = None,
    git_commit_end: str | None = None,
) -> Session | None:
    """Complete an active session; returns ``None`` when it is missing or already ended."""

    cur = store.conn.execute(
        """
        UPDATE sessions
        SET ended_at = ?, status = 'completed', summary = ?, git_commit_end = ?
        WHERE session_id = ? AND status = 'active'
        """,
        (store.now_iso(), summary, git_commit_end, session_id),
    )
    store.commit()
    if cur.rowcount == 0:
        return None
    return get_session(store, session_id)


def abandon_active_sessions(store: MemoryStore, project_path: str) -> int:
    cur = store.conn.execute(
        """
        UPDATE sessions
        SET ended_at = ?, status = 'abandoned'
        WHERE project_path = ? AND status = 'active'
        """,
        (store.now_iso(), project_path),
    )
    store.commit()
    return int(cur.rowcount)


def get_session(store: MemoryStore, session_id: str) -> Session | None:
    row = store.conn.execute(
        "SELECT * FROM sessions WHERE session_id = ?", (session_id,)
    ).fetchone()
    return _row_to_session(row) if row else None


def get_active_session(store: MemoryStore, project_path: str) -> Session | None:
    row = store.conn.execute(
        """
        SELECT * FROM sessions
        WHERE project_path = ? AND status = 'active'
        ORDER BY started_at DESC, rowid DESC
        LIMIT 1
        """,
        (project_path,),
    ).fetchone()
    return _row_to_session(row) if row else None


def recent_sessions(
    store: MemoryStore,
    project_path: str,
    *,
    limit: int = 10,
    branch: str | None = None,
) -> list[Session]:
    """Completed sessions for a project, newest first."""

    clauses = ["project_path = ?", "status = 'completed'"]
    params: list[Any] = [project_path]
    if branch:
        clauses.append("branch = ?")
        params.append(branch)
    params.append(int(limit))
    rows = store.conn.execute(
        f"""
        SELECT * FROM sessions
        WHERE {" AND ".join(clauses)}
        ORDER BY started_at DESC, rowid DESC
        LIMIT ?
        """,
        params,
    ).fetchall()
    return [_row_to_session(row) for row in rows]


def search_sessions(
    store: MemoryStore,
    project_path: str,
    *,
    query: str | None = None,
    branch: str | None = None,
    limit: int = 10,
) -> list[Session]:
    """Sessions whose summary contains ``query`` (any status); recent completed ones otherwise."""

    if not query:
        return recent_sessions(store, project_path, limit=limit, branch=branch)
    clauses = ["project_path = ?", "summary LIKE ? ESCAPE '\\'"]
    params: list[Any] = [project_path, contains_pattern(query)]
    if branch:
        clauses.append("branch = ?")
        params.append(branch)
    params.append(int(limit))
    rows = store.conn.execute(
        f"""
        SELECT * FROM sessions
        WHERE {" AND ".join(clauses)}
        ORDER BY started_at DESC, rowid DESC
        LIMIT ?
        """,
        params,
    ).fetchall()
    return [_row_to_session(row) for row in rows]


def _duration_secs(started_at: str, ended_at: str | None, store: MemoryStore) -> int:
    start = parse_iso8601(started_at)
    end = parse_iso8601(ended_at) if ended_at else store.now()
    if start is None or end is None:
        return 0
    return max(0, int((end - start).total_seconds()))


def compute_metrics(store: MemoryStore, session_id: str) -> SessionMetrics | None:
    session = get_session(store, session_id)
    if session is None:
        return None

    by_category = {category: 0 for category in EVENT_CATEGORIES}
    for row in store.conn.execute(
        """
        SELECT category, COUNT(*) AS count
        FROM session_events
        WHERE session_id = ?
        GROUP BY category
        """,
        (session_id,),
    ).fetchall():
        by_category[row["category"]] = int(row["count"])

    by_type = {
        row["event_type"]: int(row["count"])
        for row in store.conn.execute(
            """
            SELECT event_type, COUNT(*) AS count
            FROM session_events
            WHERE session_id = ?
            GROUP BY event_type
            """,
            (session_id,),
        ).fetchall()
    }

    files_read = store.conn.execute(
        """
        SELECT COUNT(DISTINCT json_extract(detail_json, '$.path'))
        FROM session_events
        WHERE session_id = ? AND event_type = 'file_read'
        """,
        (session_id,),
    ).fetchone()[0]
    files_modified = store.conn.execute(
        """
        SELECT COUNT(DISTINCT json_extract(detail_json, '$.path'))
        FROM session_events
        WHERE session_id = ? AND event_type IN ('file_write', 'file_edit')
        """,
        (session_id,),
    ).fetchone()[0]

    return SessionMetrics(
        session_id=session_id,
        duration_secs=_duration_secs(session.started_at, session.ended_at, store),
        events_total=sum(by_category.values()),
        events_by_category=by_category,
        events_by_type=by_type,
        files_read=int(files_read or 0),
        files_modified=int(files_modified or 0),
    )


def session_stats(
    store: MemoryStore, project_path: str, *, since: str | None = None
) -> dict[str, Any]:
    since_clause = "AND s.started_at >= ?" if since else ""
    params: list[Any] = [project_path]
    if since:
        params.append(since)

    session_rows = store.conn.execute(
        f"""
        SELECT s.started_at, s.ended_at
        FROM sessions s
        WHERE s.project_path = ? {since_clause}
        """,
        params,
    ).fetchall()
    total_duration = sum(
        _duration_secs(row["started_at"], row["ended_at"], store)
        for row in session_rows
        if row["ended_at"]
    )

    top_files = store.conn.execute(
        f"""
        SELECT json_extract(e.detail_json, '$.path') AS path, COUNT(*) AS count
        FROM session_events e
        JOIN sessions s ON e.session_id = s.session_id
        WHERE s.project_path = ? {since_clause}
          AND e.event_type IN ('file_read', 'file_write', 'file_edit')
          AND json_extract(e.detail_json, '$.path') IS NOT NULL
        GROUP BY path
        ORDER BY count DESC, path ASC
        LIMIT 10
        """,
        params,
    ).fetchall()

    categories = store.conn.execute(
        f"""
        SELECT e.category AS category, COUNT(*) AS count
        FROM session_events e
        JOIN sessions s ON e.session_id = s.session_id
        WHERE s.project_path = ? {since_clause}
        GROUP BY e.category
        ORDER BY count DESC, category ASC
        """,
        params,
    ).fetchall()

    patterns = store.conn.execute(
        f"""
        SELECT COUNT(*)
        FROM session_events e
        JOIN sessions s ON e.session_id = s.session_id
        WHERE s.project_path = ? {since_clause}
          AND e.event_type = 'pattern'
        """,
        params,
    ).fetchone()[0]

    return {
        "total_sessions": len(session_rows),
        "total_duration_secs": int(total_duration),
        "top_files": [{"path": row["path"], "count": int(row["count"])} for row in top_files],
        "category_breakdown": [
            {"category": row["category"], "count": int(row["count"])} for row in categories
        ],
        "patterns_discovered": int(patterns or 0),
    }
