from __future__ import annotations

import atexit
import logging
import os
import sqlite3
import threading
import weakref
from collections.abc import Callable, Iterable
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from . import lifecycle, render
from .config import SynapseMemoryConfig, load_config
from .db import default_db_path
from .lifecycle import OperationResult
from .store import MemoryStore

logger = logging.getLogger(__name__)


def build_store(*, check_same_thread: bool = True) -> MemoryStore:
    db_path = os.environ.get("SYNAPSE_MEMORY_DB") or str(default_db_path())
    return MemoryStore(db_path, check_same_thread=check_same_thread)


def close_stores(stores: Iterable[MemoryStore]) -> None:
    for store in stores:
        try:
            store.close()
        except sqlite3.Error:
            logger.warning("failed to close store %s", store.db_path, exc_info=True)


def _respond(result: OperationResult, text: Callable[[Any], str] | None = None) -> Dict[str, Any]:
    if not result.ok:
        return {"error": result.reason or lifecycle.REASON_ERROR, "message": result.message}
    value = result.value
    payload: Dict[str, Any] = {
        "text": text(value) if text is not None and value is not None else result.message,
        "data": value.to_dict() if hasattr(value, "to_dict") else value,
    }
    if result.reason:
        payload["reason"] = result.reason
    return payload


def session_start_tool(
    store: MemoryStore,
    project_path: str,
    branch: Optional[str] = None,
    git_commit: Optional[str] = None,
    *,
    config: SynapseMemoryConfig | None = None,
    probe: lifecycle.EnvironmentProbe | None = None,
) -> Dict[str, Any]:
    result = lifecycle.start_session(
        store, project_path, branch=branch, git_commit=git_commit, config=config, probe=probe
    )
    return _respond(result, render.render_session_context)


def session_end_tool(
    store: MemoryStore,
    session_id: str,
    summary: Optional[str] = None,
    git_commit: Optional[str] = None,
) -> Dict[str, Any]:
    result = lifecycle.end_session(store, session_id, summary=summary, git_commit=git_commit)
    return _respond(result, render.render_ended_session)


def record_event_tool(store: MemoryStore, session_id: str, detail: Dict[str, Any]) -> Dict[str, Any]:
    return _respond(lifecycle.record_event(store, session_id, detail))


def recall_tool(
    store: MemoryStore,
    project_path: str,
    query: Optional[str] = None,
    branch: Optional[str] = None,
    event_type: Optional[str] = None,
    limit: Optional[int] = None,
    session_id: Optional[str] = None,
    *,
    config: SynapseMemoryConfig | None = None,
) -> Dict[str, Any]:
    result = lifecycle.recall(
        store,
        project_path,
        query=query,
        branch=branch,
        event_type=event_type,
        limit=limit,
        session_id=session_id,
        config=config,
    )
    return _respond(result, lambda value: render.render_recall(value, project_path))


def stats_tool(
    store: MemoryStore,
    project_path: str,
    period: Optional[str] = None,
    *,
    config: SynapseMemoryConfig | None = None,
) -> Dict[str, Any]:
    result = lifecycle.stats(store, project_path, period=period, config=config)
    return _respond(result, lambda value: render.render_stats(value, project_path))


def promote_knowledge_tool(
    store: MemoryStore,
    project_path: str,
    title: str,
    content: str,
    knowledge_type: str,
    tags: Optional[List[str]] = None,
    session_id: Optional[str] = None,
    source_event_id: Optional[str] = None,
    allow_duplicate: bool = False,
    supersedes: Optional[str] = None,
) -> Dict[str, Any]:
    result = lifecycle.promote_knowledge(
        store,
        project_path,
        title,
        content,
        knowledge_type,
        tags=tags or [],
        session_id=session_id,
        source_event_id=source_event_id,
        allow_duplicate=allow_duplicate,
        supersedes=supersedes,
    )
    return _respond(result, render.render_promotion)


def get_knowledge_tool(
    store: MemoryStore,
    project_path: str,
    knowledge_type: Optional[str] = None,
    limit: Optional[int] = None,
    *,
    config: SynapseMemoryConfig | None = None,
) -> Dict[str, Any]:
    result = lifecycle.get_knowledge(
        store, project_path, knowledge_type=knowledge_type, limit=limit, config=config
    )
    if not result.ok:
        return _respond(result)
    items = result.value["items"]
    return {
        "text": render.render_knowledge_list(items, project_path),
        "data": {
            "items": [item.to_dict() for item in items],
            "counts": result.value["counts"],
        },
    }


def apply_knowledge_tool(store: MemoryStore, knowledge_id: str, session_id: str) -> Dict[str, Any]:
    return _respond(lifecycle.apply_knowledge(store, knowledge_id, session_id))


def value_metrics_tool(
    store: MemoryStore,
    project_path: str,
    hourly_rate: Optional[float] = None,
    *,
    config: SynapseMemoryConfig | None = None,
) -> Dict[str, Any]:
    result = lifecycle.value_report(store, project_path, hourly_rate=hourly_rate, config=config)
    return _respond(result, lambda value: render.render_value_report(value, project_path))


def build_server() -> FastMCP:
    mcp = FastMCP("synapse-memory")
    config = load_config()
    thread_local = threading.local()
    store_lock = threading.Lock()
    store_pool: weakref.WeakSet[MemoryStore] = weakref.WeakSet()

    def get_store() -> MemoryStore:
        store = getattr(thread_local, "store", None)
        if store is None:
            store = build_store()
            thread_local.store = store
            with store_lock:
                store_pool.add(store)
        return store

    def close_all_stores() -> None:
        with store_lock:
            stores = list(store_pool)
        close_stores(stores)

    atexit.register(close_all_stores)

    @mcp.tool()
    def session_start(
        project_path: str, branch: Optional[str] = None, git_commit: Optional[str] = None
    ) -> Dict[str, Any]:
        """Start a session and return ranked context from earlier work."""
        return session_start_tool(get_store(), project_path, branch, git_commit, config=config)

    @mcp.tool()
    def session_end(
        session_id: str, summary: Optional[str] = None, git_commit: Optional[str] = None
    ) -> Dict[str, Any]:
        """End an active session and return its metrics."""
        return session_end_tool(get_store(), session_id, summary, git_commit)

    @mcp.tool()
    def record_event(session_id: str, detail: Dict[str, Any]) -> Dict[str, Any]:
        """Record an event; ``detail.type`` is one of file_op, tool_call, decision,
        pattern, error_resolved, milestone."""
        return record_event_tool(get_store(), session_id, detail)

    @mcp.tool()
    def recall(
        project_path: str,
        query: Optional[str] = None,
        branch: Optional[str] = None,
        event_type: Optional[str] = None,
        limit: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Search past sessions, events and knowledge."""
        return recall_tool(
            get_store(), project_path, query, branch, event_type, limit, session_id, config=config
        )

    @mcp.tool()
    def stats(project_path: str, period: Optional[str] = None) -> Dict[str, Any]:
        """Project activity for day, week, month or all."""
        return stats_tool(get_store(), project_path, period, config=config)

    @mcp.tool()
    def promote_knowledge(
        project_path: str,
        title: str,
        content: str,
        knowledge_type: str,
        tags: Optional[List[str]] = None,
        session_id: Optional[str] = None,
        source_event_id: Optional[str] = None,
        allow_duplicate: bool = False,
        supersedes: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Promote a finding to durable project knowledge."""
        return promote_knowledge_tool(
            get_store(),
            project_path,
            title,
            content,
            knowledge_type,
            tags,
            session_id,
            source_event_id,
            allow_duplicate,
            supersedes,
        )

    @mcp.tool()
    def get_knowledge(
        project_path: str, knowledge_type: Optional[str] = None, limit: Optional[int] = None
    ) -> Dict[str, Any]:
        """List promoted knowledge, newest first."""
        return get_knowledge_tool(get_store(), project_path, knowledge_type, limit, config=config)

    @mcp.tool()
    def apply_knowledge(knowledge_id: str, session_id: str) -> Dict[str, Any]:
        """Record that a knowledge item was applied in a session."""
        return apply_knowledge_tool(get_store(), knowledge_id, session_id)

    @mcp.tool()
    def get_value_metrics(project_path: str, hourly_rate: Optional[float] = None) -> Dict[str, Any]:
        """Estimated time and money saved for a project."""
        return value_metrics_tool(get_store(), project_path, hourly_rate, config=config)

    return mcp


def run() -> None:
    mcp = build_server()
    mcp.run()


if __name__ == "__main__":
    run()
