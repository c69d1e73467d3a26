from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from ..event_kinds import EventDetail, detail_to_dict


@dataclass
class Session:
    session_id: str
    project_path: str
    branch: str
    started_at: str
    status: str
    ended_at: str | None = None
    summary: str | None = None
    git_commit_start: str | None = None
    git_commit_end: str | None = None
    agent_type: str = "unknown"
    agent_version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SessionEvent:
    event_id: str
    session_id: str
    timestamp: str
    event_type: str
    category: str
    detail: EventDetail

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "session_id": self.session_id,
            "timestamp": self.timestamp,
            "event_type": self.event_type,
            "category": self.category,
            "detail": detail_to_dict(self.detail),
        }


@dataclass
class PromotedKnowledge:
    knowledge_id: str
    project_path: str
    title: str
    content: str
    knowledge_type: str
    created_at: str
    tags: list[str] = field(default_factory=list)
    session_id: str | None = None
    source_event_id: str | None = None
    branch: str | None = None
    content_hash: str | None = None
    usage_count: int = 0
    superseded_by: str | None = None
    synced_at: str | None = None
    remote_knowledge_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class FileImportance:
    project_path: str
    file_path: str
    read_count: int
    edit_count: int
    last_accessed_at: str
    importance_score: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AgentInfo:
    agent_type: str
    display_name: str
    first_seen_at: str
    last_seen_at: str
    total_sessions: int


@dataclass
class KnowledgeUsage:
    usage_id: str
    knowledge_id: str
    session_id: str
    usage_type: str
    timestamp: str


@dataclass
class ValueMetrics:
    project_path: str
    total_sessions: int = 0
    context_reuse_count: int = 0
    knowledge_surfaced_count: int = 0
    decisions_recalled_count: int = 0
    patterns_applied_count: int = 0
    errors_prevented_count: int = 0
    estimated_time_saved_secs: int = 0
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SessionMetrics:
    session_id: str
    duration_secs: int
    events_total: int
    events_by_category: dict[str, int]
    events_by_type: dict[str, int]
    files_read: int
    files_modified: int

    @property
    def decisions_recorded(self) -> int:
        return self.events_by_type.get("decision", 0)

    @property
    def patterns_discovered(self) -> int:
        return self.events_by_type.get("pattern", 0)

    @property
    def errors_resolved(self) -> int:
        return self.events_by_type.get("error_resolved", 0)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["decisions_recorded"] = self.decisions_recorded
        data["patterns_discovered"] = self.patterns_discovered
        data["errors_resolved"] = self.errors_resolved
        return data


@dataclass
class DuplicateCandidate:
    knowledge: PromotedKnowledge
    similarity: float
    match_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "knowledge_id": self.knowledge.knowledge_id,
            "title": self.knowledge.title,
            "similarity": self.similarity,
            "match_type": self.match_type,
        }


@dataclass
class ScoredKnowledge:
    knowledge: PromotedKnowledge
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {**self.knowledge.to_dict(), "score": self.score}


@dataclass
class ScoredSession:
    session: Session
    score: float
    decisions: list[SessionEvent] = field(default_factory=list)
    patterns: list[SessionEvent] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.session.to_dict(),
            "score": self.score,
            "decisions": [event.to_dict() for event in self.decisions],
            "patterns": [event.to_dict() for event in self.patterns],
        }
