from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Any

from .types import ValueMetrics

if TYPE_CHECKING:
    from ._store import MemoryStore

# Estimated seconds saved per unit.
TIME_SAVINGS = {
    "knowledge_surfaced": 60,
    "decision_recalled": 180,
    "pattern_applied": 300,
    "error_prevented": 900,
}

_COUNTER_COLUMNS = {
    "total_sessions",
    "context_reuse_count",
    "knowledge_surfaced_count",
    "decisions_recalled_count",
    "patterns_applied_count",
    "errors_prevented_count",
}


def _row_to_metrics(row: sqlite3.Row) -> ValueMetrics:
    return ValueMetrics(
        project_path=row["project_path"],
        total_sessions=int(row["total_sessions"]),
        context_reuse_count=int(row["context_reuse_count"]),
        knowledge_surfaced_count=int(row["knowledge_surfaced_count"]),
        decisions_recalled_count=int(row["decisions_recalled_count"]),
        patterns_applied_count=int(row["patterns_applied_count"]),
        errors_prevented_count=int(row["errors_prevented_count"]),
        estimated_time_saved_secs=int(row["estimated_time_saved_secs"]),
        updated_at=row["updated_at"],
    )


def get_value_metrics(store: MemoryStore, project_path: str) -> ValueMetrics | None:
    row = store.conn.execute(
        "SELECT * FROM value_metrics WHERE project_path = ?", (project_path,)
    ).fetchone()
    return _row_to_metrics(row) if row else None


def _increment(
    store: MemoryStore,
    project_path: str,
    column: str,
    count: int = 1,
    seconds_per_unit: int = 0,
) -> None:
    if column not in _COUNTER_COLUMNS:
        raise ValueError(f"Unknown value counter: {column}")
    now = store.now_iso()
    with store.transaction():
        store.conn.execute(
            "INSERT OR IGNORE INTO value_metrics(project_path, updated_at) VALUES (?, ?)",
            (project_path, now),
        )
        store.conn.execute(
            f"""
            UPDATE value_metrics
            SET {column} = {column} + ?,
                estimated_time_saved_secs = estimated_time_saved_secs + ?,
                updated_at = ?
            WHERE project_path = ?
            """,
            (int(count), int(count) * seconds_per_unit, now, project_path),
        )


def increment_session_count(store: MemoryStore, project_path: str) -> None:
    _increment(store, project_path, "total_sessions")


def increment_context_reuse(store: MemoryStore, project_path: str) -> None:
    _increment(store, project_path, "context_reuse_count")


def increment_knowledge_surfaced(store: MemoryStore, project_path: str, count: int = 1) -> None:
    _increment(
        store,
        project_path,
        "knowledge_surfaced_count",
        count,
        TIME_SAVINGS["knowledge_surfaced"],
    )


def increment_decision_recall(store: MemoryStore, project_path: str, count: int = 1) -> None:
    _increment(
        store,
        project_path,
        "decisions_recalled_count",
        count,
        TIME_SAVINGS["decision_recalled"],
    )


def increment_pattern_applied(store: MemoryStore, project_path: str, count: int = 1) -> None:
    _increment(
        store, project_path, "patterns_applied_count", count, TIME_SAVINGS["pattern_applied"]
    )


def increment_error_prevented(store: MemoryStore, project_path: str, count: int = 1) -> None:
    _increment(
        store, project_path, "errors_prevented_count", count, TIME_SAVINGS["error_prevented"]
    )


def value_summary(
    store: MemoryStore, project_path: str, *, hourly_rate: float = 50.0
) -> dict[str, Any]:
    metrics = get_value_metrics(store, project_path) or ValueMetrics(project_path=project_path)
    seconds = metrics.estimated_time_saved_secs
    return {
        "time_saved_minutes": seconds // 60,
        "estimated_value_usd": round(seconds / 3600 * hourly_rate, 2),
        "breakdown": {
            "knowledge_surfaced": metrics.knowledge_surfaced_count,
            "decisions_recalled": metrics.decisions_recalled_count,
            "patterns_applied": metrics.patterns_applied_count,
            "errors_prevented": metrics.errors_prevented_count,
        },
        "total_sessions": metrics.total_sessions,
        "context_reuse_count": metrics.context_reuse_count,
    }
