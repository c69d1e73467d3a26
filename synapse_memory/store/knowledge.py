from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from .. import db
from ..event_kinds import KNOWLEDGE_TYPES
from .types import PromotedKnowledge
from .utils import contains_pattern

if TYPE_CHECKING:
    from ._store import MemoryStore


def _row_to_knowledge(row: sqlite3.Row) -> PromotedKnowledge:
    tags = db.from_json(row["tags"])
    return PromotedKnowledge(
        knowledge_id=row["knowledge_id"],
        project_path=row["project_path"],
        title=row["title"],
        content=row["content"],
        knowledge_type=row["knowledge_type"],
        created_at=row["created_at"],
        tags=[str(tag) for tag in tags] if isinstance(tags, list) else [],
        session_id=row["session_id"],
        source_event_id=row["source_event_id"],
        branch=row["branch"],
        content_hash=row["content_hash"],
        usage_count=int(row["usage_count"] or 0),
        superseded_by=row["superseded_by"],
        synced_at=row["synced_at"],
        remote_knowledge_id=row["remote_knowledge_id"],
    )


def insert_knowledge(
    store: MemoryStore,
    *,
    project_path: str,
    title: str,
    content: str,
    knowledge_type: str,
    tags: Sequence[str] = (),
    session_id: str | None = None,
    source_event_id: str | None = None,
    branch: str | None = None,
    content_hash: str | None = None,
) -> PromotedKnowledge:
    knowledge = PromotedKnowledge(
        knowledge_id=store.new_id(),
        project_path=project_path,
        title=title,
        content=content,
        knowledge_type=knowledge_type,
        created_at=store.now_iso(),
        tags=list(dict.fromkeys(tags)),
        session_id=session_id,
        source_event_id=source_event_id,
        branch=branch,
        content_hash=content_hash,
    )
    store.conn.execute(
        """
        INSERT INTO promoted_knowledge(
            knowledge_id, project_path, session_id, source_event_id,
            title, content, knowledge_type, tags, created_at,
            branch, content_hash, usage_count
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0)
        """,
        (
            knowledge.knowledge_id,
            knowledge.project_path,
            knowledge.session_id,
            knowledge.source_event_id,
            knowledge.title,
            knowledge.content,
            knowledge.knowledge_type,
            db.to_json(knowledge.tags),
            knowledge.created_at,
            knowledge.branch,
            knowledge.content_hash,
        ),
    )
    store.commit()
    return knowledge


def get_knowledge(store: MemoryStore, knowledge_id: str) -> PromotedKnowledge | None:
    row = store.conn.execute(
        "SELECT * FROM promoted_knowledge WHERE knowledge_id = ?", (knowledge_id,)
    ).fetchone()
    return _row_to_knowledge(row) if row else None


def project_knowledge(
    store: MemoryStore,
    project_path: str,
    *,
    knowledge_type: str | None = None,
    limit: int = 50,
) -> list[PromotedKnowledge]:
    """Visible (non-superseded) knowledge for a project, newest first."""

    clauses = ["project_path = ?", "superseded_by IS NULL"]
    params: list[Any] = [project_path]
    if knowledge_type:
        clauses.append("knowledge_type = ?")
        params.append(knowledge_type)
    params.append(int(limit))
    rows = store.conn.execute(
        f"""
        SELECT * FROM promoted_knowledge
        WHERE {" AND ".join(clauses)}
        ORDER BY created_at DESC, rowid DESC
        LIMIT ?
        """,
        params,
    ).fetchall()
    return [_row_to_knowledge(row) for row in rows]


def all_visible_knowledge(store: MemoryStore, project_path: str) -> list[PromotedKnowledge]:
    rows = store.conn.execute(
        """
        SELECT * FROM promoted_knowledge
        WHERE project_path = ? AND superseded_by IS NULL
        ORDER BY created_at DESC, rowid DESC
        """,
        (project_path,),
    ).fetchall()
    return [_row_to_knowledge(row) for row in rows]


def search_knowledge(
    store: MemoryStore,
    project_path: str,
    query: str,
    *,
    limit: int = 10,
) -> list[PromotedKnowledge]:
    pattern = contains_pattern(query)
    rows = store.conn.execute(
        """
        SELECT * FROM promoted_knowledge
        WHERE project_path = ? AND superseded_by IS NULL
          AND (title LIKE ? ESCAPE '\\' OR content LIKE ? ESCAPE '\\')
        ORDER BY created_at DESC, rowid DESC
        LIMIT ?
        """,
        (project_path, pattern, pattern, int(limit)),
    ).fetchall()
    return [_row_to_knowledge(row) for row in rows]


def session_knowledge(store: MemoryStore, session_id: str) -> list[PromotedKnowledge]:
    rows = store.conn.execute(
        """
        SELECT * FROM promoted_knowledge
        WHERE session_id = ?
        ORDER BY created_at ASC, rowid ASC
        """,
        (session_id,),
    ).fetchall()
    return [_row_to_knowledge(row) for row in rows]


def unsynced_knowledge(store: MemoryStore, project_path: str) -> list[PromotedKnowledge]:
    """Oldest first so a batch consumer can resume in creation order."""

    rows = store.conn.execute(
        """
        SELECT * FROM promoted_knowledge
        WHERE project_path = ? AND synced_at IS NULL AND superseded_by IS NULL
        ORDER BY created_at ASC, rowid ASC
        """,
        (project_path,),
    ).fetchall()
    return [_row_to_knowledge(row) for row in rows]


def mark_knowledge_synced(
    store: MemoryStore, knowledge_id: str, remote_knowledge_id: str
) -> None:
    store.conn.execute(
        """
        UPDATE promoted_knowledge
        SET synced_at = ?, remote_knowledge_id = ?
        WHERE knowledge_id = ?
        """,
        (store.now_iso(), remote_knowledge_id, knowledge_id),
    )
    store.commit()


def set_superseded_by(store: MemoryStore, old_id: str, new_id: str) -> bool:
    cur = store.conn.execute(
        "UPDATE promoted_knowledge SET superseded_by = ? WHERE knowledge_id = ?",
        (new_id, old_id),
    )
    store.commit()
    return cur.rowcount > 0


def increment_usage_count(store: MemoryStore, knowledge_id: str) -> None:
    store.conn.execute(
        "UPDATE promoted_knowledge SET usage_count = usage_count + 1 WHERE knowledge_id = ?",
        (knowledge_id,),
    )
    store.commit()


def knowledge_counts(store: MemoryStore, project_path: str) -> dict[str, Any]:
    by_type = {knowledge_type: 0 for knowledge_type in KNOWLEDGE_TYPES}
    for row in store.conn.execute(
        """
        SELECT knowledge_type, COUNT(*) AS count
        FROM promoted_knowledge
        WHERE project_path = ? AND superseded_by IS NULL
        GROUP BY knowledge_type
        """,
        (project_path,),
    ).fetchall():
        by_type[row["knowledge_type"]] = int(row["count"])
    return {"total": sum(by_type.values()), "by_type": by_type}
