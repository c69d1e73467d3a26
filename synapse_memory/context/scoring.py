"""Relevance weights for surfacing sessions and knowledge.

Every function takes the caller's branch and the current time explicitly, so
ranking never consults git or the wall clock on its own.
"""

from __future__ import annotations

import datetime as dt
import math
from collections.abc import Iterable

from ..store.types import PromotedKnowledge, ScoredKnowledge, ScoredSession, Session
from ..store.utils import age_days

TRUNK_BRANCHES = ("main", "master")


def branch_weight(item_branch: str | None, current_branch: str) -> float:
    if not item_branch:
        return 0.5
    if item_branch == current_branch:
        return 1.0
    if item_branch in TRUNK_BRANCHES:
        return 0.7
    return 0.3


def recency_weight(created_at: str, now: dt.datetime) -> float:
    days = age_days(created_at, now)
    if days < 1:
        return 1.0
    if days < 7:
        return 0.8
    if days < 30:
        return 0.5
    return 0.3


def usage_weight(usage_count: int) -> float:
    return 1.0 + math.log(usage_count + 1) * 0.1


def knowledge_score(item: PromotedKnowledge, current_branch: str, now: dt.datetime) -> float:
    branch = branch_weight(item.branch, current_branch)
    recency = recency_weight(item.created_at, now)
    usage = usage_weight(item.usage_count)
    return branch * 0.4 + recency * 0.4 + (usage - 1.0) * 0.2 + 0.2


def session_score(session: Session, current_branch: str, now: dt.datetime) -> float:
    branch = branch_weight(session.branch, current_branch)
    recency = recency_weight(session.started_at, now)
    return branch * 0.5 + recency * 0.5


def rank_knowledge(
    items: Iterable[PromotedKnowledge], current_branch: str, now: dt.datetime
) -> list[ScoredKnowledge]:
    scored = [
        ScoredKnowledge(knowledge=item, score=knowledge_score(item, current_branch, now))
        for item in items
    ]
    # sorted() is stable, so equal scores keep their input order.
    return sorted(scored, key=lambda entry: entry.score, reverse=True)


def rank_sessions(
    sessions: Iterable[Session], current_branch: str, now: dt.datetime
) -> list[ScoredSession]:
    scored = [
        ScoredSession(session=session, score=session_score(session, current_branch, now))
        for session in sessions
    ]
    return sorted(scored, key=lambda entry: entry.score, reverse=True)
