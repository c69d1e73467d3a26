from __future__ import annotations

import typer
from rich import print

from synapse_memory import db


def version_cmd(*, store_from_path, db_path: str | None) -> None:
    """Print the schema version of the store (migrating it if needed)."""

    store = store_from_path(db_path)
    try:
        versions = db.applied_versions(store.conn)
    finally:
        store.close()
    print(f"Schema version: {versions[-1] if versions else 0} (latest {db.SCHEMA_VERSION})")
    print(f"Applied migrations: {', '.join(str(v) for v in versions) or 'none'}")


def migrate_cmd(*, db_path: str) -> None:
    """Bring a store to the current schema and report which steps ran."""

    conn = db.connect(db_path)
    try:
        applied = db.ensure_current(conn)
    except db.MigrationError as exc:
        print(f"[red]Migration failed: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        conn.close()
    if applied:
        print(f"[green]Applied migrations: {', '.join(str(v) for v in applied)}[/green]")
    else:
        print(f"Already at schema version {db.SCHEMA_VERSION}")


def refresh_files_cmd(*, store_from_path, db_path: str | None, project_path: str) -> None:
    """Re-apply recency decay to file importance scores."""

    store = store_from_path(db_path)
    try:
        updated = store.refresh_importance_scores(project_path)
    finally:
        store.close()
    print(f"Updated {updated} file importance score(s)")
