from __future__ import annotations

import json
import logging
import os
import sqlite3
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_DB_DIR = Path("~/.synapse-memory")
DB_FILENAME = "memory.db"
IN_MEMORY = ":memory:"

SCHEMA_VERSION = 3


class MigrationError(RuntimeError):
    """The migration table cannot bring a store to the requested version."""


@dataclass(frozen=True)
class Migration:
    """One schema step: a guarded statement batch plus columns to add.

    SQLite has no ``ADD COLUMN IF NOT EXISTS``; columns are listed separately
    so the step stays idempotent when re-run against a partially built store.
    """

    statements: str
    columns: tuple[tuple[str, str, str], ...] = ()
    after_columns: str = ""


MIGRATIONS: dict[int, Migration] = {
    1: Migration(
        statements="""
        CREATE TABLE IF NOT EXISTS sessions (
            session_id TEXT PRIMARY KEY,
            project_path TEXT NOT NULL,
            branch TEXT NOT NULL DEFAULT 'main',
            started_at TEXT NOT NULL,
            ended_at TEXT,
            status TEXT NOT NULL DEFAULT 'active',
            summary TEXT,
            git_commit_start TEXT,
            git_commit_end TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS session_events (
            event_id TEXT PRIMARY KEY,
            session_id TEXT NOT NULL REFERENCES sessions(session_id),
            timestamp TEXT NOT NULL,
            event_type TEXT NOT NULL,
            category TEXT NOT NULL DEFAULT 'other',
            detail_json TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE INDEX IF NOT EXISTS idx_events_session ON session_events(session_id);
        CREATE INDEX IF NOT EXISTS idx_events_type ON session_events(event_type);
        CREATE INDEX IF NOT EXISTS idx_sessions_project ON sessions(project_path);
        CREATE INDEX IF NOT EXISTS idx_sessions_branch ON sessions(project_path, branch);
        CREATE INDEX IF NOT EXISTS idx_sessions_status ON sessions(status);
        """
    ),
    2: Migration(
        statements="""
        CREATE TABLE IF NOT EXISTS promoted_knowledge (
            knowledge_id TEXT PRIMARY KEY,
            project_path TEXT NOT NULL,
            session_id TEXT REFERENCES sessions(session_id),
            source_event_id TEXT REFERENCES session_events(event_id),
            title TEXT NOT NULL,
            content TEXT NOT NULL,
            knowledge_type TEXT NOT NULL DEFAULT 'decision',
            tags TEXT NOT NULL DEFAULT '[]',
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            synced_at TEXT,
            remote_knowledge_id TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_knowledge_project ON promoted_knowledge(project_path);
        CREATE INDEX IF NOT EXISTS idx_knowledge_type ON promoted_knowledge(knowledge_type);
        CREATE INDEX IF NOT EXISTS idx_knowledge_synced ON promoted_knowledge(synced_at);

        CREATE TABLE IF NOT EXISTS sync_config (
            project_path TEXT PRIMARY KEY,
            endpoint TEXT,
            remote_project_id TEXT,
            tenant_id TEXT,
            api_key_env_var TEXT NOT NULL DEFAULT 'SYNAPSE_API_KEY',
            auto_sync_promoted INTEGER NOT NULL DEFAULT 0,
            last_synced_at TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );
        """
    ),
    3: Migration(
        statements="""
        CREATE TABLE IF NOT EXISTS agents (
            agent_type TEXT PRIMARY KEY,
            display_name TEXT NOT NULL,
            first_seen_at TEXT NOT NULL DEFAULT (datetime('now')),
            last_seen_at TEXT NOT NULL DEFAULT (datetime('now')),
            total_sessions INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS file_importance (
            project_path TEXT NOT NULL,
            file_path TEXT NOT NULL,
            read_count INTEGER NOT NULL DEFAULT 0,
            edit_count INTEGER NOT NULL DEFAULT 0,
            last_accessed_at TEXT NOT NULL,
            importance_score REAL NOT NULL DEFAULT 0.0,
            PRIMARY KEY (project_path, file_path)
        );
        CREATE INDEX IF NOT EXISTS idx_file_importance_project ON file_importance(project_path);
        CREATE INDEX IF NOT EXISTS idx_file_importance_score
            ON file_importance(project_path, importance_score DESC);

        CREATE TABLE IF NOT EXISTS knowledge_usage (
            usage_id TEXT PRIMARY KEY,
            knowledge_id TEXT NOT NULL,
            session_id TEXT NOT NULL,
            usage_type TEXT NOT NULL,
            timestamp TEXT NOT NULL DEFAULT (datetime('now'))
        );
        CREATE INDEX IF NOT EXISTS idx_knowledge_usage_knowledge ON knowledge_usage(knowledge_id);
        CREATE INDEX IF NOT EXISTS idx_knowledge_usage_session ON knowledge_usage(session_id);

        CREATE TABLE IF NOT EXISTS value_metrics (
            project_path TEXT PRIMARY KEY,
            total_sessions INTEGER NOT NULL DEFAULT 0,
            context_reuse_count INTEGER NOT NULL DEFAULT 0,
            knowledge_surfaced_count INTEGER NOT NULL DEFAULT 0,
            decisions_recalled_count INTEGER NOT NULL DEFAULT 0,
            patterns_applied_count INTEGER NOT NULL DEFAULT 0,
            errors_prevented_count INTEGER NOT NULL DEFAULT 0,
            estimated_time_saved_secs INTEGER NOT NULL DEFAULT 0,
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );
        """,
        columns=(
            ("sessions", "agent_type", "TEXT NOT NULL DEFAULT 'unknown'"),
            ("sessions", "agent_version", "TEXT"),
            ("promoted_knowledge", "branch", "TEXT"),
            ("promoted_knowledge", "content_hash", "TEXT"),
            ("promoted_knowledge", "usage_count", "INTEGER NOT NULL DEFAULT 0"),
            ("promoted_knowledge", "superseded_by", "TEXT"),
        ),
        after_columns="""
        CREATE INDEX IF NOT EXISTS idx_knowledge_hash ON promoted_knowledge(content_hash);
        CREATE INDEX IF NOT EXISTS idx_knowledge_branch ON promoted_knowledge(project_path, branch);
        """,
    ),
}


def default_db_path() -> Path:
    directory = Path(os.getenv("SYNAPSE_MEMORY_DIR") or DEFAULT_DB_DIR).expanduser()
    return directory / DB_FILENAME


def connect(db_path: Path | str, check_same_thread: bool = True) -> sqlite3.Connection:
    if str(db_path) == IN_MEMORY:
        conn = sqlite3.connect(IN_MEMORY, check_same_thread=check_same_thread)
    else:
        path = Path(db_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path, check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.OperationalError:
        conn.execute("PRAGMA journal_mode = DELETE")
    conn.execute("PRAGMA synchronous = NORMAL")
    return conn


def schema_version(conn: sqlite3.Connection) -> int:
    try:
        row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    except sqlite3.OperationalError:
        return 0
    if row is None or row[0] is None:
        return 0
    return int(row[0])


def applied_versions(conn: sqlite3.Connection) -> list[int]:
    try:
        rows = conn.execute("SELECT version FROM schema_version ORDER BY version").fetchall()
    except sqlite3.OperationalError:
        return []
    return [int(row[0]) for row in rows]


def ensure_current(
    conn: sqlite3.Connection,
    *,
    migrations: Mapping[int, Migration] | None = None,
    target: int = SCHEMA_VERSION,
) -> list[int]:
    """Apply every pending migration up to ``target`` and return the versions applied.

    Each version runs in its own transaction together with its version-log
    row, so a failure leaves the store at the last fully applied version.
    A gap in the migration table aborts before anything is applied.
    """

    table = MIGRATIONS if migrations is None else migrations
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER PRIMARY KEY,
            applied_at TEXT NOT NULL DEFAULT (datetime('now'))
        )
        """
    )
    conn.commit()

    current = schema_version(conn)
    pending = list(range(current + 1, target + 1))
    for version in pending:
        if version not in table:
            logger.error("missing migration for version %s (store at %s)", version, current)
            raise MigrationError(f"Missing migration for version {version}")

    for version in pending:
        _apply_migration(conn, version, table[version])
        logger.info("applied schema migration %s", version)
    return pending


def _apply_migration(conn: sqlite3.Connection, version: int, migration: Migration) -> None:
    # executescript commits any open transaction first, so the step's BEGIN/COMMIT
    # live inside the script and column guards are resolved up front.
    column_sql = [
        f"ALTER TABLE {table} ADD COLUMN {column} {column_type};"
        for table, column, column_type in migration.columns
        if column not in _table_columns(conn, table)
    ]
    script = "\n".join(
        [
            "BEGIN;",
            migration.statements,
            *column_sql,
            migration.after_columns,
            f"INSERT INTO schema_version (version) VALUES ({int(version)});",
            "COMMIT;",
        ]
    )
    try:
        conn.executescript(script)
    except sqlite3.Error:
        if conn.in_transaction:
            conn.rollback()
        raise


def _table_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}


def to_json(data: Any) -> str:
    if data is None:
        payload: Any = {}
    else:
        payload = data
    return json.dumps(payload, ensure_ascii=False)


def from_json(text: str | None) -> Any:
    if not text:
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return {}
