from __future__ import annotations

import typer
from rich import print
from rich.markup import escape

from synapse_memory import lifecycle, render
from synapse_memory.commands.common import exit_on_failure, print_json


def promote_cmd(
    *,
    store_from_path,
    db_path: str | None,
    project_path: str,
    knowledge_type: str,
    title: str,
    content: str,
    tags: list[str] | None,
    session_id: str | None,
    allow_duplicate: bool,
    supersedes: str | None,
) -> None:
    """Promote a finding to project knowledge, refusing duplicates by default."""

    store = store_from_path(db_path)
    try:
        result = lifecycle.promote_knowledge(
            store,
            project_path,
            title,
            content,
            knowledge_type,
            tags=tags or [],
            session_id=session_id,
            allow_duplicate=allow_duplicate,
            supersedes=supersedes,
        )
        total = store.knowledge_counts(project_path)["total"] if result.ok else None
    finally:
        store.close()
    exit_on_failure(result)
    if result.reason == lifecycle.REASON_DUPLICATE:
        print(f"[yellow]{escape(render.render_promotion(result.value))}[/yellow]")
        raise typer.Exit(code=2)
    typer.echo(render.render_promotion(result.value, knowledge_total=total))


def knowledge_cmd(
    *,
    store_from_path,
    db_path: str | None,
    project_path: str,
    knowledge_type: str | None,
    limit: int | None,
    json_out: bool,
) -> None:
    """List visible knowledge for a project."""

    store = store_from_path(db_path)
    try:
        result = lifecycle.get_knowledge(
            store, project_path, knowledge_type=knowledge_type, limit=limit
        )
    finally:
        store.close()
    exit_on_failure(result)
    items = result.value["items"]
    if json_out:
        print_json([item.to_dict() for item in items])
        return
    typer.echo(render.render_knowledge_list(items, project_path))


def apply_cmd(*, store_from_path, db_path: str | None, knowledge_id: str, session_id: str) -> None:
    """Record that a knowledge item was applied in a session."""

    store = store_from_path(db_path)
    try:
        result = lifecycle.apply_knowledge(store, knowledge_id, session_id)
    finally:
        store.close()
    exit_on_failure(result)
    print(f"[green]{escape(result.message)}[/green]")


def recall_cmd(
    *,
    store_from_path,
    db_path: str | None,
    project_path: str,
    query: str | None,
    branch: str | None,
    event_type: str | None,
    limit: int | None,
) -> None:
    """Search past sessions, events and knowledge."""

    store = store_from_path(db_path)
    try:
        result = lifecycle.recall(
            store, project_path, query=query, branch=branch, event_type=event_type, limit=limit
        )
    finally:
        store.close()
    exit_on_failure(result)
    typer.echo(render.render_recall(result.value, project_path))


def stats_cmd(
    *, store_from_path, db_path: str | None, project_path: str, period: str | None
) -> None:
    """Print activity stats for a project."""

    store = store_from_path(db_path)
    try:
        result = lifecycle.stats(store, project_path, period=period)
    finally:
        store.close()
    exit_on_failure(result)
    typer.echo(render.render_stats(result.value, project_path))


def value_cmd(
    *, store_from_path, db_path: str | None, project_path: str, hourly_rate: float | None
) -> None:
    """Print the estimated value delivered for a project."""

    store = store_from_path(db_path)
    try:
        result = lifecycle.value_report(store, project_path, hourly_rate=hourly_rate)
    finally:
        store.close()
    exit_on_failure(result)
    if result.value is None:
        typer.echo(result.message)
        return
    typer.echo(render.render_value_report(result.value, project_path))
