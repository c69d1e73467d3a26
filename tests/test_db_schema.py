from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from synapse_memory import db
from synapse_memory.store import MemoryStore


def _tables(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {row[0] for row in rows}


def test_fresh_store_reaches_current_version(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "mem.sqlite")
    try:
        applied = db.ensure_current(conn)
        tables = _tables(conn)
        versions = db.applied_versions(conn)
    finally:
        conn.close()

    assert applied == [1, 2, 3]
    assert versions == [1, 2, 3]
    assert {
        "sessions",
        "session_events",
        "promoted_knowledge",
        "sync_config",
        "agents",
        "file_importance",
        "knowledge_usage",
        "value_metrics",
    } <= tables


def test_ensure_current_does_not_rerun_logged_migrations(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "mem.sqlite")
    try:
        db.ensure_current(conn)
        again = db.ensure_current(conn)
        count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    finally:
        conn.close()

    assert again == []
    assert count == db.SCHEMA_VERSION


def test_upgrade_from_version_one_keeps_rows(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "mem.sqlite")
    try:
        assert db.ensure_current(conn, target=1) == [1]
        conn.execute(
            """
            INSERT INTO sessions(session_id, project_path, branch, started_at, status)
            VALUES ('s1', '/repo', 'main', '2026-01-01T00:00:00+00:00', 'completed')
            """
        )
        conn.commit()

        applied = db.ensure_current(conn)
        row = conn.execute("SELECT agent_type, agent_version FROM sessions").fetchone()
        columns = {r[1] for r in conn.execute("PRAGMA table_info(promoted_knowledge)")}
    finally:
        conn.close()

    assert applied == [2, 3]
    assert row["agent_type"] == "unknown"
    assert row["agent_version"] is None
    assert {"branch", "content_hash", "usage_count", "superseded_by"} <= columns


def test_missing_migration_aborts_before_applying_anything(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "mem.sqlite")
    gapped = {1: db.MIGRATIONS[1], 3: db.MIGRATIONS[3]}
    try:
        with pytest.raises(db.MigrationError, match="version 2"):
            db.ensure_current(conn, migrations=gapped)
        version = db.schema_version(conn)
        tables = _tables(conn)
    finally:
        conn.close()

    assert version == 0
    assert "sessions" not in tables


def test_failing_step_rolls_back_only_itself(tmp_path: Path) -> None:
    broken = {
        1: db.MIGRATIONS[1],
        2: db.Migration(
            statements="""
            CREATE TABLE half_built (id INTEGER PRIMARY KEY);
            INSERT INTO table_that_does_not_exist VALUES (1);
            """
        ),
    }
    conn = db.connect(tmp_path / "mem.sqlite")
    try:
        with pytest.raises(sqlite3.OperationalError):
            db.ensure_current(conn, migrations=broken, target=2)
        version = db.schema_version(conn)
        tables = _tables(conn)
    finally:
        conn.close()

    assert version == 1
    assert "sessions" in tables
    assert "half_built" not in tables


def test_store_construction_propagates_migration_error(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr(db, "MIGRATIONS", {1: db.MIGRATIONS[1]})
    with pytest.raises(db.MigrationError):
        MemoryStore(tmp_path / "mem.sqlite")


def test_default_db_path_honours_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SYNAPSE_MEMORY_DIR", str(tmp_path / "custom"))
    assert db.default_db_path() == tmp_path / "custom" / db.DB_FILENAME


def test_in_memory_store_is_migrated() -> None:
    store = MemoryStore(db.IN_MEMORY)
    try:
        assert store.schema_version() == db.SCHEMA_VERSION
    finally:
        store.close()
