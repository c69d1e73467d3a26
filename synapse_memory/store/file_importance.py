from __future__ import annotations

import datetime as dt
import sqlite3
from typing import TYPE_CHECKING

from .types import FileImportance
from .utils import age_days

if TYPE_CHECKING:
    from ._store import MemoryStore

EDIT_WEIGHT = 3
HALF_LIFE_DAYS = 7
SCORE_EPSILON = 0.01


def _row_to_file(row: sqlite3.Row) -> FileImportance:
    return FileImportance(
        project_path=row["project_path"],
        file_path=row["file_path"],
        read_count=int(row["read_count"]),
        edit_count=int(row["edit_count"]),
        last_accessed_at=row["last_accessed_at"],
        importance_score=float(row["importance_score"]),
    )


def compute_importance_score(
    read_count: int, edit_count: int, last_accessed_at: str, now: dt.datetime
) -> float:
    """Edits weigh three reads; the total halves for every week since last access."""

    decay = 0.5 ** (max(0.0, age_days(last_accessed_at, now)) / HALF_LIFE_DAYS)
    return (read_count + edit_count * EDIT_WEIGHT) * decay


def upsert_file_access(
    store: MemoryStore, project_path: str, file_path: str, operation: str
) -> FileImportance:
    if operation not in ("read", "edit"):
        raise ValueError(f"Invalid file access '{operation}'. Allowed: read, edit")
    row = store.conn.execute(
        """
        SELECT read_count, edit_count FROM file_importance
        WHERE project_path = ? AND file_path = ?
        """,
        (project_path, file_path),
    ).fetchone()
    read_count = (int(row["read_count"]) if row else 0) + (1 if operation == "read" else 0)
    edit_count = (int(row["edit_count"]) if row else 0) + (1 if operation == "edit" else 0)
    now = store.now()
    accessed_at = now.isoformat()
    score = compute_importance_score(read_count, edit_count, accessed_at, now)
    store.conn.execute(
        """
        INSERT INTO file_importance(
            project_path, file_path, read_count, edit_count, last_accessed_at, importance_score
        )
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(project_path, file_path) DO UPDATE SET
            read_count = excluded.read_count,
            edit_count = excluded.edit_count,
            last_accessed_at = excluded.last_accessed_at,
            importance_score = excluded.importance_score
        """,
        (project_path, file_path, read_count, edit_count, accessed_at, score),
    )
    store.commit()
    return FileImportance(
        project_path=project_path,
        file_path=file_path,
        read_count=read_count,
        edit_count=edit_count,
        last_accessed_at=accessed_at,
        importance_score=score,
    )


def get_file_importance(
    store: MemoryStore, project_path: str, file_path: str
) -> FileImportance | None:
    row = store.conn.execute(
        "SELECT * FROM file_importance WHERE project_path = ? AND file_path = ?",
        (project_path, file_path),
    ).fetchone()
    return _row_to_file(row) if row else None


def important_files(
    store: MemoryStore, project_path: str, *, limit: int = 10
) -> list[FileImportance]:
    rows = store.conn.execute(
        """
        SELECT * FROM file_importance
        WHERE project_path = ?
        ORDER BY importance_score DESC, file_path ASC
        LIMIT ?
        """,
        (project_path, int(limit)),
    ).fetchall()
    return [_row_to_file(row) for row in rows]


def refresh_importance_scores(store: MemoryStore, project_path: str) -> int:
    """Re-apply recency decay; returns how many scores moved noticeably."""

    now = store.now()
    rows = store.conn.execute(
        "SELECT * FROM file_importance WHERE project_path = ?", (project_path,)
    ).fetchall()
    updated = 0
    with store.transaction():
        for row in rows:
            score = compute_importance_score(
                int(row["read_count"]), int(row["edit_count"]), row["last_accessed_at"], now
            )
            if abs(score - float(row["importance_score"])) <= SCORE_EPSILON:
                continue
            store.conn.execute(
                """
                UPDATE file_importance SET importance_score = ?
                WHERE project_path = ? AND file_path = ?
                """,
                (score, project_path, row["file_path"]),
            )
            updated += 1
    return updated
