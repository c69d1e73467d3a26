from ._store import MemoryStore
from .types import (
    AgentInfo,
    DuplicateCandidate,
    FileImportance,
    KnowledgeUsage,
    PromotedKnowledge,
    ScoredKnowledge,
    ScoredSession,
    Session,
    SessionEvent,
    SessionMetrics,
    ValueMetrics,
)

__all__ = [
    "AgentInfo",
    "DuplicateCandidate",
    "FileImportance",
    "KnowledgeUsage",
    "MemoryStore",
    "PromotedKnowledge",
    "ScoredKnowledge",
    "ScoredSession",
    "Session",
    "SessionEvent",
    "SessionMetrics",
    "ValueMetrics",
]
