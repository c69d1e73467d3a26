from __future__ import annotations

import json

import typer
from rich import print
from rich.markup import escape

from synapse_memory import lifecycle, render
from synapse_memory.commands.common import exit_on_failure, print_json


def start_cmd(
    *,
    store_from_path,
    db_path: str | None,
    project_path: str,
    branch: str | None,
    git_commit: str | None,
    json_out: bool,
) -> None:
    """Start a session and print the surfaced context."""

    store = store_from_path(db_path)
    try:
        result = lifecycle.start_session(
            store, project_path, branch=branch, git_commit=git_commit
        )
    finally:
        store.close()
    exit_on_failure(result)
    if json_out:
        print_json(result.value.to_dict())
        return
    typer.echo(render.render_session_context(result.value))


def end_cmd(
    *,
    store_from_path,
    db_path: str | None,
    session_id: str,
    summary: str | None,
    git_commit: str | None,
) -> None:
    """Complete an active session and print its metrics."""

    store = store_from_path(db_path)
    try:
        result = lifecycle.end_session(store, session_id, summary=summary, git_commit=git_commit)
    finally:
        store.close()
    exit_on_failure(result)
    typer.echo(render.render_ended_session(result.value))


def event_cmd(*, store_from_path, db_path: str | None, session_id: str, detail_json: str) -> None:
    """Record one event; the detail's ``type`` decides the event type."""

    try:
        detail = json.loads(detail_json)
    except json.JSONDecodeError as exc:
        print(f"[red]Invalid detail JSON: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    if not isinstance(detail, dict):
        print("[red]Event detail must be a JSON object[/red]")
        raise typer.Exit(code=1)

    store = store_from_path(db_path)
    try:
        result = lifecycle.record_event(store, session_id, detail)
    finally:
        store.close()
    exit_on_failure(result)
    print(f"[green]{escape(result.message)}[/green]")


def export_cmd(*, store_from_path, db_path: str | None, session_id: str) -> None:
    """Print a session with its metrics, events and knowledge as JSON."""

    store = store_from_path(db_path)
    try:
        result = lifecycle.export_session(store, session_id)
    finally:
        store.close()
    exit_on_failure(result)
    print_json(result.value)
