from __future__ import annotations

import datetime as dt
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any
from uuid import uuid4

from .. import db
from ..event_kinds import EventDetail
from . import agents as store_agents
from . import events as store_events
from . import file_importance as store_files
from . import knowledge as store_knowledge
from . import sessions as store_sessions
from . import usage as store_usage
from . import value_metrics as store_value
from .types import (
    AgentInfo,
    FileImportance,
    KnowledgeUsage,
    PromotedKnowledge,
    Session,
    SessionEvent,
    SessionMetrics,
    ValueMetrics,
)


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


def _uuid() -> str:
    return str(uuid4())


class MemoryStore:
    """Connection owner for the knowledge store.

    The clock and id factory are injectable so tests can pin timestamps and
    identifiers; everything else delegates to the per-entity modules.
    """

    def __init__(
        self,
        db_path: Path | str | None = None,
        *,
        check_same_thread: bool = True,
        clock: Callable[[], dt.datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        if db_path is None:
            db_path = db.default_db_path()
        self.db_path = db_path if str(db_path) == db.IN_MEMORY else Path(db_path).expanduser()
        self.conn = db.connect(self.db_path, check_same_thread=check_same_thread)
        db.ensure_current(self.conn)
        self._clock = clock or _utc_now
        self._id_factory = id_factory or _uuid
        self._tx_depth = 0

    def now(self) -> dt.datetime:
        return self._clock()

    def now_iso(self) -> str:
        return self.now().isoformat()

    def new_id(self) -> str:
        return self._id_factory()

    def commit(self) -> None:
        if self._tx_depth == 0:
            self.conn.commit()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        self._tx_depth += 1
        try:
            yield
        except BaseException:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                self.conn.rollback()
            raise
        self._tx_depth -= 1
        if self._tx_depth == 0:
            self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    def schema_version(self) -> int:
        return db.schema_version(self.conn)

    # Sessions

    def create_session(
        self,
        *,
        project_path: str,
        branch: str,
        git_commit_start: str | None = None,
        agent_type: str = "unknown",
        agent_version: str | None = None,
    ) -> Session:
        return store_sessions.create_session(
            self,
            project_path=project_path,
            branch=branch,
            git_commit_start=git_commit_start,
            agent_type=agent_type,
            agent_version=agent_version,
        )

    def end_session(
        self,
        session_id: str,
        *,
        summary: str | None = None,
        git_commit_end: str | None = None,
    ) -> Session | None:
        return store_sessions.end_session(
            self, session_id, summary=summary, git_commit_end=git_commit_end
        )

    def abandon_active_sessions(self, project_path: str) -> int:
        return store_sessions.abandon_active_sessions(self, project_path)

    def get_session(self, session_id: str) -> Session | None:
        return store_sessions.get_session(self, session_id)

    def get_active_session(self, project_path: str) -> Session | None:
        return store_sessions.get_active_session(self, project_path)

    def recent_sessions(
        self, project_path: str, *, limit: int = 10, branch: str | None = None
    ) -> list[Session]:
        return store_sessions.recent_sessions(self, project_path, limit=limit, branch=branch)

    def search_sessions(
        self,
        project_path: str,
        *,
        query: str | None = None,
        branch: str | None = None,
        limit: int = 10,
    ) -> list[Session]:
        return store_sessions.search_sessions(
            self, project_path, query=query, branch=branch, limit=limit
        )

    def compute_metrics(self, session_id: str) -> SessionMetrics | None:
        return store_sessions.compute_metrics(self, session_id)

    def session_stats(self, project_path: str, *, since: str | None = None) -> dict[str, Any]:
        return store_sessions.session_stats(self, project_path, since=since)

    # Events

    def insert_event(self, session_id: str, detail: EventDetail) -> SessionEvent:
        return store_events.insert_event(self, session_id, detail)

    def get_event(self, event_id: str) -> SessionEvent | None:
        return store_events.get_event(self, event_id)

    def session_events(
        self, session_id: str, *, event_type: str | None = None
    ) -> list[SessionEvent]:
        return store_events.session_events(self, session_id, event_type=event_type)

    def recent_events(
        self, project_path: str, event_type: str, *, limit: int = 20
    ) -> list[SessionEvent]:
        return store_events.recent_events(self, project_path, event_type, limit=limit)

    # Knowledge

    def insert_knowledge(
        self,
        *,
        project_path: str,
        title: str,
        content: str,
        knowledge_type: str,
        tags: Sequence[str] = (),
        session_id: str | None = None,
        source_event_id: str | None = None,
        branch: str | None = None,
        content_hash: str | None = None,
    ) -> PromotedKnowledge:
        return store_knowledge.insert_knowledge(
            self,
            project_path=project_path,
            title=title,
            content=content,
            knowledge_type=knowledge_type,
            tags=tags,
            session_id=session_id,
            source_event_id=source_event_id,
            branch=branch,
            content_hash=content_hash,
        )

    def get_knowledge(self, knowledge_id: str) -> PromotedKnowledge | None:
        return store_knowledge.get_knowledge(self, knowledge_id)

    def project_knowledge(
        self,
        project_path: str,
        *,
        knowledge_type: str | None = None,
        limit: int = 50,
    ) -> list[PromotedKnowledge]:
        return store_knowledge.project_knowledge(
            self, project_path, knowledge_type=knowledge_type, limit=limit
        )

    def search_knowledge(
        self, project_path: str, query: str, *, limit: int = 10
    ) -> list[PromotedKnowledge]:
        return store_knowledge.search_knowledge(self, project_path, query, limit=limit)

    def session_knowledge(self, session_id: str) -> list[PromotedKnowledge]:
        return store_knowledge.session_knowledge(self, session_id)

    def unsynced_knowledge(self, project_path: str) -> list[PromotedKnowledge]:
        return store_knowledge.unsynced_knowledge(self, project_path)

    def mark_knowledge_synced(self, knowledge_id: str, remote_knowledge_id: str) -> None:
        store_knowledge.mark_knowledge_synced(self, knowledge_id, remote_knowledge_id)

    def knowledge_counts(self, project_path: str) -> dict[str, Any]:
        return store_knowledge.knowledge_counts(self, project_path)

    def increment_usage_count(self, knowledge_id: str) -> None:
        store_knowledge.increment_usage_count(self, knowledge_id)

    # Usage

    def record_knowledge_usage(
        self, knowledge_id: str, session_id: str, usage_type: str
    ) -> KnowledgeUsage:
        return store_usage.record_knowledge_usage(self, knowledge_id, session_id, usage_type)

    def knowledge_usage_history(self, knowledge_id: str, *, limit: int = 50) -> list[KnowledgeUsage]:
        return store_usage.knowledge_usage_history(self, knowledge_id, limit=limit)

    def session_knowledge_usage(self, session_id: str) -> list[KnowledgeUsage]:
        return store_usage.session_knowledge_usage(self, session_id)

    def usage_counts_by_type(
        self, project_path: str, *, since: str | None = None
    ) -> dict[str, int]:
        return store_usage.usage_counts_by_type(self, project_path, since=since)

    # File importance

    def upsert_file_access(
        self, project_path: str, file_path: str, operation: str
    ) -> FileImportance:
        return store_files.upsert_file_access(self, project_path, file_path, operation)

    def get_file_importance(self, project_path: str, file_path: str) -> FileImportance | None:
        return store_files.get_file_importance(self, project_path, file_path)

    def important_files(self, project_path: str, *, limit: int = 10) -> list[FileImportance]:
        return store_files.important_files(self, project_path, limit=limit)

    def refresh_importance_scores(self, project_path: str) -> int:
        return store_files.refresh_importance_scores(self, project_path)

    # Agents

    def upsert_agent(self, agent_type: str) -> AgentInfo:
        return store_agents.upsert_agent(self, agent_type)

    def get_agent(self, agent_type: str) -> AgentInfo | None:
        return store_agents.get_agent(self, agent_type)

    def list_agents(self) -> list[AgentInfo]:
        return store_agents.list_agents(self)

    def agent_stats(
        self, project_path: str, *, since: str | None = None
    ) -> list[dict[str, Any]]:
        return store_agents.agent_stats(self, project_path, since=since)

    # Value metrics

    def get_value_metrics(self, project_path: str) -> ValueMetrics | None:
        return store_value.get_value_metrics(self, project_path)

    def increment_session_count(self, project_path: str) -> None:
        store_value.increment_session_count(self, project_path)

    def increment_context_reuse(self, project_path: str) -> None:
        store_value.increment_context_reuse(self, project_path)

    def increment_knowledge_surfaced(self, project_path: str, count: int = 1) -> None:
        store_value.increment_knowledge_surfaced(self, project_path, count)

    def increment_decision_recall(self, project_path: str, count: int = 1) -> None:
        store_value.increment_decision_recall(self, project_path, count)

    def increment_pattern_applied(self, project_path: str, count: int = 1) -> None:
        store_value.increment_pattern_applied(self, project_path, count)

    def increment_error_prevented(self, project_path: str, count: int = 1) -> None:
        store_value.increment_error_prevented(self, project_path, count)

    def value_summary(self, project_path: str, *, hourly_rate: float = 50.0) -> dict[str, Any]:
        return store_value.value_summary(self, project_path, hourly_rate=hourly_rate)
