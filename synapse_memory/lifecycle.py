"""Request-level operations over the store.

These compose the record stores with the ranking and dedup engines. Callers
(CLI, MCP) get an ``OperationResult`` back; storage failures and bad input
are reported through it instead of raised.
"""

from __future__ import annotations

import functools
import logging
import sqlite3
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, TypeVar

from . import git_info
from .agent_identity import detect_agent_type, detect_agent_version
from .config import SynapseMemoryConfig, load_config
from .context import dedup, scoring
from .event_kinds import (
    EventDetail,
    FileOpDetail,
    parse_detail,
    validate_event_type,
    validate_knowledge_type,
)
from .store import MemoryStore
from .store.types import (
    DuplicateCandidate,
    FileImportance,
    PromotedKnowledge,
    ScoredKnowledge,
    ScoredSession,
    Session,
    SessionEvent,
    SessionMetrics,
)
from .store.utils import period_since

logger = logging.getLogger(__name__)

KNOWLEDGE_CANDIDATE_LIMIT = 50
SESSION_CANDIDATE_FACTOR = 3

REASON_NOT_FOUND = "not_found"
REASON_NOT_ACTIVE = "not_active"
REASON_DUPLICATE = "duplicate"
REASON_INVALID = "invalid"
REASON_ERROR = "error"


@dataclass
class OperationResult:
    ok: bool
    message: str
    reason: str | None = None
    value: Any = None


@dataclass
class EnvironmentProbe:
    branch: Callable[[str], str] = git_info.current_branch
    commit: Callable[[str], str | None] = git_info.head_commit
    agent_type: Callable[[], str] = detect_agent_type
    agent_version: Callable[[], str | None] = detect_agent_version


@dataclass
class SessionContext:
    session: Session
    abandoned_count: int
    recent_sessions: list[ScoredSession] = field(default_factory=list)
    knowledge: list[ScoredKnowledge] = field(default_factory=list)
    important_files: list[FileImportance] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session": self.session.to_dict(),
            "abandoned_count": self.abandoned_count,
            "recent_sessions": [entry.to_dict() for entry in self.recent_sessions],
            "knowledge": [entry.to_dict() for entry in self.knowledge],
            "important_files": [item.to_dict() for item in self.important_files],
        }


@dataclass
class EndedSession:
    session: Session
    metrics: SessionMetrics

    def to_dict(self) -> dict[str, Any]:
        return {"session": self.session.to_dict(), "metrics": self.metrics.to_dict()}


@dataclass
class PromotionOutcome:
    knowledge: PromotedKnowledge | None
    duplicates: list[DuplicateCandidate] = field(default_factory=list)
    superseded: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "knowledge": self.knowledge.to_dict() if self.knowledge else None,
            "duplicates": [candidate.to_dict() for candidate in self.duplicates],
            "superseded": self.superseded,
        }


@dataclass
class RecalledSession:
    session: Session
    events: list[SessionEvent] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.session.to_dict(),
            "events": [event.to_dict() for event in self.events],
        }


@dataclass
class RecallResult:
    query: str | None
    event_type: str | None
    events: list[SessionEvent] = field(default_factory=list)
    sessions: list[RecalledSession] = field(default_factory=list)
    knowledge: list[PromotedKnowledge] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "event_type": self.event_type,
            "events": [event.to_dict() for event in self.events],
            "sessions": [entry.to_dict() for entry in self.sessions],
            "knowledge": [item.to_dict() for item in self.knowledge],
        }


F = TypeVar("F", bound=Callable[..., OperationResult])


def _reported(action: str) -> Callable[[F], F]:
    """Translate storage errors and bad input into a failed ``OperationResult``."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> OperationResult:
            try:
                return func(*args, **kwargs)
            except ValueError as exc:
                return OperationResult(False, f"Failed to {action}: {exc}", REASON_INVALID)
            except sqlite3.Error as exc:
                logger.exception("failed to %s", action)
                return OperationResult(False, f"Failed to {action}: {exc}", REASON_ERROR)

        return wrapper  # type: ignore[return-value]

    return decorator


def _config(config: SynapseMemoryConfig | None) -> SynapseMemoryConfig:
    return config if config is not None else load_config()


@_reported("start session")
def start_session(
    store: MemoryStore,
    project_path: str,
    *,
    branch: str | None = None,
    git_commit: str | None = None,
    agent_type: str | None = None,
    agent_version: str | None = None,
    config: SynapseMemoryConfig | None = None,
    probe: EnvironmentProbe | None = None,
) -> OperationResult:
    cfg = _config(config)
    env = probe or EnvironmentProbe()
    resolved_branch = branch or env.branch(project_path)
    resolved_commit = git_commit or env.commit(project_path)
    resolved_agent = agent_type or env.agent_type()
    resolved_version = agent_version or env.agent_version()

    with store.transaction():
        abandoned = store.abandon_active_sessions(project_path)
        session = store.create_session(
            project_path=project_path,
            branch=resolved_branch,
            git_commit_start=resolved_commit,
            agent_type=resolved_agent,
            agent_version=resolved_version,
        )
    if abandoned:
        logger.info("abandoned %s stale session(s) for %s", abandoned, project_path)

    store.upsert_agent(resolved_agent)
    store.increment_session_count(project_path)

    now = store.now()
    candidates = store.recent_sessions(
        project_path, limit=cfg.recent_session_limit * SESSION_CANDIDATE_FACTOR
    )
    recent = scoring.rank_sessions(candidates, resolved_branch, now)[: cfg.recent_session_limit]
    for entry in recent:
        entry.decisions = store.session_events(entry.session.session_id, event_type="decision")
        entry.patterns = store.session_events(entry.session.session_id, event_type="pattern")

    ranked = scoring.rank_knowledge(
        store.project_knowledge(project_path, limit=KNOWLEDGE_CANDIDATE_LIMIT),
        resolved_branch,
        now,
    )[: cfg.knowledge_context_limit]
    surfaced: list[ScoredKnowledge] = []
    for entry in ranked:
        store.record_knowledge_usage(entry.knowledge.knowledge_id, session.session_id, "surfaced")
        knowledge = replace(entry.knowledge, usage_count=entry.knowledge.usage_count + 1)
        surfaced.append(ScoredKnowledge(knowledge=knowledge, score=entry.score))
    if surfaced:
        store.increment_knowledge_surfaced(project_path, len(surfaced))
    if recent:
        store.increment_context_reuse(project_path)

    context = SessionContext(
        session=session,
        abandoned_count=abandoned,
        recent_sessions=recent,
        knowledge=surfaced,
        important_files=store.important_files(project_path, limit=cfg.important_files_limit),
    )
    return OperationResult(True, f"Session started: {session.session_id}", value=context)


@_reported("end session")
def end_session(
    store: MemoryStore,
    session_id: str,
    *,
    summary: str | None = None,
    git_commit: str | None = None,
) -> OperationResult:
    session = store.end_session(session_id, summary=summary, git_commit_end=git_commit)
    if session is None:
        return OperationResult(
            False, f"Session {session_id} not found or already ended.", REASON_NOT_FOUND
        )
    metrics = store.compute_metrics(session_id)
    if metrics is None:
        return OperationResult(False, f"Session {session_id} not found.", REASON_NOT_FOUND)
    return OperationResult(
        True,
        f"Session {session_id} completed.",
        value=EndedSession(session=session, metrics=metrics),
    )


@_reported("record event")
def record_event(
    store: MemoryStore,
    session_id: str,
    detail: EventDetail | Mapping[str, Any],
) -> OperationResult:
    if isinstance(detail, Mapping):
        detail = parse_detail(detail)
    session = store.get_session(session_id)
    if session is None:
        return OperationResult(False, f"Session {session_id} not found.", REASON_NOT_FOUND)
    if session.status != "active":
        return OperationResult(
            False,
            f"Session {session_id} is {session.status}, not active.",
            REASON_NOT_ACTIVE,
        )
    with store.transaction():
        event = store.insert_event(session_id, detail)
        if isinstance(detail, FileOpDetail):
            access = "read" if detail.operation == "read" else "edit"
            store.upsert_file_access(session.project_path, detail.path, access)
    return OperationResult(
        True, f"Recorded {event.event_type} event {event.event_id}", value=event
    )


@_reported("promote knowledge")
def promote_knowledge(
    store: MemoryStore,
    project_path: str,
    title: str,
    content: str,
    knowledge_type: str,
    *,
    tags: Sequence[str] = (),
    session_id: str | None = None,
    source_event_id: str | None = None,
    allow_duplicate: bool = False,
    supersedes: str | None = None,
) -> OperationResult:
    knowledge_type = validate_knowledge_type(knowledge_type)
    if not title.strip():
        raise ValueError("title must not be empty")

    if not allow_duplicate:
        excluded = {supersedes} if supersedes else set()
        duplicates = dedup.find_duplicates(
            store, project_path, title, content, exclude_ids=excluded
        )
        if duplicates:
            best = duplicates[0]
            logger.info(
                "refused duplicate promotion of %r (%s match with %s)",
                title,
                best.match_type,
                best.knowledge.knowledge_id,
            )
            return OperationResult(
                True,
                f"Duplicate detected ({best.match_type} match, "
                f"similarity {best.similarity:.0%}): {best.knowledge.knowledge_id}",
                REASON_DUPLICATE,
                PromotionOutcome(knowledge=None, duplicates=duplicates),
            )

    branch = None
    if session_id:
        session = store.get_session(session_id)
        branch = session.branch if session else None

    superseded = None
    with store.transaction():
        knowledge = store.insert_knowledge(
            project_path=project_path,
            title=title,
            content=content,
            knowledge_type=knowledge_type,
            tags=tags,
            session_id=session_id,
            source_event_id=source_event_id,
            branch=branch,
            content_hash=dedup.content_hash(content),
        )
        if supersedes and dedup.mark_superseded(store, supersedes, knowledge.knowledge_id):
            superseded = supersedes
    return OperationResult(
        True,
        f"Knowledge promoted: {knowledge.title} ({knowledge.knowledge_id})",
        value=PromotionOutcome(knowledge=knowledge, superseded=superseded),
    )


@_reported("recall")
def recall(
    store: MemoryStore,
    project_path: str,
    *,
    query: str | None = None,
    branch: str | None = None,
    event_type: str | None = None,
    limit: int | None = None,
    session_id: str | None = None,
    config: SynapseMemoryConfig | None = None,
) -> OperationResult:
    cfg = _config(config)
    max_results = limit or cfg.recall_limit
    if event_type:
        event_type = validate_event_type(event_type)

    result = RecallResult(query=query, event_type=event_type)
    if event_type and not query:
        result.events = store.recent_events(project_path, event_type, limit=max_results)
        return OperationResult(True, f"Found {len(result.events)} event(s).", value=result)

    for session in store.search_sessions(
        project_path, query=query, branch=branch, limit=max_results
    ):
        if event_type:
            events = store.session_events(session.session_id, event_type=event_type)
        else:
            events = store.session_events(session.session_id, event_type="decision")
            events += store.session_events(session.session_id, event_type="pattern")
        result.sessions.append(RecalledSession(session=session, events=events))

    if query:
        result.knowledge = store.search_knowledge(project_path, query, limit=max_results)
        _note_recalled(store, project_path, result.knowledge, session_id)

    return OperationResult(
        True,
        f"Found {len(result.sessions)} session(s) and {len(result.knowledge)} knowledge item(s).",
        value=result,
    )


def _note_recalled(
    store: MemoryStore,
    project_path: str,
    items: Sequence[PromotedKnowledge],
    session_id: str | None,
) -> None:
    if not items:
        return
    if session_id is None:
        active = store.get_active_session(project_path)
        session_id = active.session_id if active else None
    for item in items:
        if session_id:
            store.record_knowledge_usage(item.knowledge_id, session_id, "recalled")
        else:
            store.increment_usage_count(item.knowledge_id)
    decisions = sum(1 for item in items if item.knowledge_type == "decision")
    if decisions:
        store.increment_decision_recall(project_path, decisions)


@_reported("get stats")
def stats(
    store: MemoryStore,
    project_path: str,
    *,
    period: str | None = None,
    config: SynapseMemoryConfig | None = None,
) -> OperationResult:
    resolved = period or _config(config).stats_period
    since = period_since(resolved, store.now())
    data = store.session_stats(project_path, since=since)
    data["period"] = resolved
    data["agents"] = store.agent_stats(project_path, since=since)
    data["knowledge_usage"] = store.usage_counts_by_type(project_path, since=since)
    return OperationResult(True, f"Project stats for {project_path} ({resolved})", value=data)


@_reported("get knowledge")
def get_knowledge(
    store: MemoryStore,
    project_path: str,
    *,
    knowledge_type: str | None = None,
    limit: int | None = None,
    config: SynapseMemoryConfig | None = None,
) -> OperationResult:
    if knowledge_type:
        knowledge_type = validate_knowledge_type(knowledge_type)
    items = store.project_knowledge(
        project_path,
        knowledge_type=knowledge_type,
        limit=limit or _config(config).knowledge_list_limit,
    )
    return OperationResult(
        True,
        f"Project knowledge ({len(items)} items)",
        value={"items": items, "counts": store.knowledge_counts(project_path)},
    )


@_reported("apply knowledge")
def apply_knowledge(store: MemoryStore, knowledge_id: str, session_id: str) -> OperationResult:
    knowledge = store.get_knowledge(knowledge_id)
    if knowledge is None:
        return OperationResult(False, f"Knowledge {knowledge_id} not found.", REASON_NOT_FOUND)
    if store.get_session(session_id) is None:
        return OperationResult(False, f"Session {session_id} not found.", REASON_NOT_FOUND)
    store.record_knowledge_usage(knowledge_id, session_id, "applied")
    if knowledge.knowledge_type == "pattern":
        store.increment_pattern_applied(knowledge.project_path)
    elif knowledge.knowledge_type == "error_resolved":
        store.increment_error_prevented(knowledge.project_path)
    return OperationResult(
        True,
        f"Applied {knowledge.knowledge_type}: {knowledge.title}",
        value=store.get_knowledge(knowledge_id),
    )


@_reported("get value metrics")
def value_report(
    store: MemoryStore,
    project_path: str,
    *,
    hourly_rate: float | None = None,
    config: SynapseMemoryConfig | None = None,
) -> OperationResult:
    rate = hourly_rate if hourly_rate is not None else _config(config).hourly_rate
    if store.get_value_metrics(project_path) is None:
        return OperationResult(
            True,
            f"No data yet for {project_path}. Start a session to begin tracking value.",
            value=None,
        )
    summary = store.value_summary(project_path, hourly_rate=rate)
    summary["hourly_rate"] = rate
    summary["knowledge"] = store.knowledge_counts(project_path)
    return OperationResult(True, f"Value report for {project_path}", value=summary)


@_reported("export session")
def export_session(store: MemoryStore, session_id: str) -> OperationResult:
    session = store.get_session(session_id)
    if session is None:
        return OperationResult(False, f"Session {session_id} not found.", REASON_NOT_FOUND)
    metrics = store.compute_metrics(session_id)
    payload = {
        "session": session.to_dict(),
        "metrics": metrics.to_dict() if metrics else None,
        "events": [event.to_dict() for event in store.session_events(session_id)],
        "knowledge": [item.to_dict() for item in store.session_knowledge(session_id)],
    }
    return OperationResult(True, f"Exported session {session_id}", value=payload)
