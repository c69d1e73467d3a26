from __future__ import annotations

import logging
import os

import typer
from rich import print

from . import __version__
from .commands.common import resolve_project_for_cli, store_from_path
from .commands.db_cmds import migrate_cmd, refresh_files_cmd, version_cmd
from .commands.knowledge_cmds import (
    apply_cmd,
    knowledge_cmd,
    promote_cmd,
    recall_cmd,
    stats_cmd,
    value_cmd,
)
from .commands.session_cmds import end_cmd, event_cmd, export_cmd, start_cmd
from .db import default_db_path

app = typer.Typer(help="synapse-memory: session memory and project knowledge for coding agents")
db_app = typer.Typer(help="Database maintenance")
app.add_typer(db_app, name="db")


def _store(db_path: str | None):
    return store_from_path(db_path)


def _resolve_project(project: str | None) -> str:
    return resolve_project_for_cli(os.getcwd(), project)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG)


@app.command()
def start(
    project: str = typer.Option(None, help="Project path (defaults to git repo root)"),
    branch: str = typer.Option(None, help="Branch name (auto-detected if omitted)"),
    git_commit: str = typer.Option(None, help="Current HEAD commit"),
    json_out: bool = typer.Option(False, "--json", help="Print the context bundle as JSON"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Start a session; stale active sessions for the project are abandoned."""
    start_cmd(
        store_from_path=_store,
        db_path=db_path,
        project_path=_resolve_project(project),
        branch=branch,
        git_commit=git_commit,
        json_out=json_out,
    )


@app.command()
def end(
    session_id: str,
    summary: str = typer.Option(None, help="What the session accomplished"),
    git_commit: str = typer.Option(None, help="HEAD commit at the end of the session"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """End an active session and print its metrics."""
    end_cmd(
        store_from_path=_store,
        db_path=db_path,
        session_id=session_id,
        summary=summary,
        git_commit=git_commit,
    )


@app.command()
def event(
    session_id: str,
    detail_json: str = typer.Argument(..., help='Detail object, e.g. {"type": "milestone", "summary": "..."}'),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Record an event in an active session."""
    event_cmd(store_from_path=_store, db_path=db_path, session_id=session_id, detail_json=detail_json)


@app.command()
def recall(
    query: str = typer.Argument(None, help="Substring to match in summaries and knowledge"),
    project: str = typer.Option(None, help="Project path (defaults to git repo root)"),
    branch: str = typer.Option(None, help="Only sessions on this branch"),
    event_type: str = typer.Option(None, "--event-type", help="Only events of this type"),
    limit: int = typer.Option(None, help="Max results"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Search past sessions, events and knowledge."""
    recall_cmd(
        store_from_path=_store,
        db_path=db_path,
        project_path=_resolve_project(project),
        query=query,
        branch=branch,
        event_type=event_type,
        limit=limit,
    )


@app.command()
def stats(
    period: str = typer.Option(None, help="day, week, month or all"),
    project: str = typer.Option(None, help="Project path (defaults to git repo root)"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Show project activity stats."""
    stats_cmd(
        store_from_path=_store,
        db_path=db_path,
        project_path=_resolve_project(project),
        period=period,
    )


@app.command()
def promote(
    kind: str,
    title: str,
    content: str,
    tags: list[str] = typer.Option(None, "--tag", help="Repeat for multiple tags"),
    session_id: str = typer.Option(None, help="Source session id"),
    allow_duplicate: bool = typer.Option(False, help="Promote even if a duplicate exists"),
    supersedes: str = typer.Option(None, help="Knowledge id this replaces"),
    project: str = typer.Option(None, help="Project path (defaults to git repo root)"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Promote a decision, pattern, error_resolved or milestone to project knowledge."""
    promote_cmd(
        store_from_path=_store,
        db_path=db_path,
        project_path=_resolve_project(project),
        knowledge_type=kind,
        title=title,
        content=content,
        tags=tags,
        session_id=session_id,
        allow_duplicate=allow_duplicate,
        supersedes=supersedes,
    )


@app.command()
def knowledge(
    kind: str = typer.Option(None, help="Filter by knowledge type"),
    limit: int = typer.Option(None, help="Max results"),
    json_out: bool = typer.Option(False, "--json", help="Print JSON"),
    project: str = typer.Option(None, help="Project path (defaults to git repo root)"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """List promoted knowledge, newest first."""
    knowledge_cmd(
        store_from_path=_store,
        db_path=db_path,
        project_path=_resolve_project(project),
        knowledge_type=kind,
        limit=limit,
        json_out=json_out,
    )


@app.command()
def apply(
    knowledge_id: str,
    session_id: str,
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Mark a knowledge item as applied in a session."""
    apply_cmd(store_from_path=_store, db_path=db_path, knowledge_id=knowledge_id, session_id=session_id)


@app.command()
def value(
    hourly_rate: float = typer.Option(None, help="Hourly rate in USD"),
    project: str = typer.Option(None, help="Project path (defaults to git repo root)"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Show estimated time and money saved."""
    value_cmd(
        store_from_path=_store,
        db_path=db_path,
        project_path=_resolve_project(project),
        hourly_rate=hourly_rate,
    )


@app.command()
def export(
    session_id: str,
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Export a session as JSON."""
    export_cmd(store_from_path=_store, db_path=db_path, session_id=session_id)


@db_app.command("version")
def db_version(db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """Show the applied schema migrations."""
    version_cmd(store_from_path=_store, db_path=db_path)


@db_app.command("migrate")
def db_migrate(db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """Apply pending schema migrations."""
    migrate_cmd(db_path=db_path or os.environ.get("SYNAPSE_MEMORY_DB") or str(default_db_path()))


@db_app.command("refresh-files")
def db_refresh_files(
    project: str = typer.Option(None, help="Project path (defaults to git repo root)"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Recompute file importance scores with recency decay."""
    refresh_files_cmd(store_from_path=_store, db_path=db_path, project_path=_resolve_project(project))


@app.command()
def mcp() -> None:
    """Run the MCP server over stdio."""
    from .mcp_server import run as mcp_run

    mcp_run()


@app.command("version")
def version() -> None:
    """Print version."""

    print(__version__)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
