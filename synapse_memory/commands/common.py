from __future__ import annotations

import json
import os
from typing import Any

import typer
from rich import print
from rich.markup import escape

from synapse_memory.db import default_db_path
from synapse_memory.git_info import resolve_project_path
from synapse_memory.lifecycle import OperationResult
from synapse_memory.store import MemoryStore


def store_from_path(db_path: str | None) -> MemoryStore:
    return MemoryStore(db_path or os.environ.get("SYNAPSE_MEMORY_DB") or default_db_path())


def resolve_project_for_cli(cwd: str, project: str | None) -> str:
    if project:
        return project
    env_project = os.environ.get("SYNAPSE_MEMORY_PROJECT")
    if env_project:
        return env_project
    return resolve_project_path(cwd)


def exit_on_failure(result: OperationResult) -> None:
    if result.ok:
        return
    print(f"[red]{escape(result.message)}[/red]")
    raise typer.Exit(code=1)


def print_json(data: Any) -> None:
    typer.echo(json.dumps(data, ensure_ascii=False, indent=2))
