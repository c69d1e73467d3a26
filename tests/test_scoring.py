from __future__ import annotations

import datetime as dt
import math

import pytest

from synapse_memory.context import scoring
from synapse_memory.store.types import PromotedKnowledge, Session

NOW = dt.datetime(2026, 3, 1, 12, 0, tzinfo=dt.UTC)


def _ago(**delta: float) -> str:
    return (NOW - dt.timedelta(**delta)).isoformat()


def _knowledge(kid: str, *, branch: str | None, created_at: str, usage: int = 0) -> PromotedKnowledge:
    return PromotedKnowledge(
        knowledge_id=kid,
        project_path="/repo",
        title=kid,
        content=kid,
        knowledge_type="decision",
        created_at=created_at,
        branch=branch,
        usage_count=usage,
    )


def _session(sid: str, *, branch: str, started_at: str) -> Session:
    return Session(
        session_id=sid,
        project_path="/repo",
        branch=branch,
        started_at=started_at,
        status="completed",
    )


@pytest.mark.parametrize(
    ("item_branch", "expected"),
    [("feature/x", 1.0), ("main", 0.7), ("master", 0.7), ("feature/y", 0.3), (None, 0.5), ("", 0.5)],
)
def test_branch_weight(item_branch, expected) -> None:
    assert scoring.branch_weight(item_branch, "feature/x") == expected


def test_trunk_matching_current_branch_is_full_weight() -> None:
    assert scoring.branch_weight("main", "main") == 1.0


@pytest.mark.parametrize(
    ("delta", "expected"),
    [
        ({"hours": 23}, 1.0),
        ({"days": 1}, 0.8),
        ({"days": 6, "hours": 23}, 0.8),
        ({"days": 7}, 0.5),
        ({"days": 29}, 0.5),
        ({"days": 30}, 0.3),
        ({"days": 400}, 0.3),
    ],
)
def test_recency_weight_buckets(delta, expected) -> None:
    assert scoring.recency_weight(_ago(**delta), NOW) == expected


def test_usage_weight() -> None:
    assert scoring.usage_weight(0) == 1.0
    assert scoring.usage_weight(9) == pytest.approx(1.0 + math.log(10) * 0.1)


def test_knowledge_and_session_score_formulas() -> None:
    item = _knowledge("k", branch="main", created_at=_ago(days=3), usage=4)
    expected = 0.7 * 0.4 + 0.8 * 0.4 + (math.log(5) * 0.1) * 0.2 + 0.2
    assert scoring.knowledge_score(item, "feature/x", NOW) == pytest.approx(expected)

    session = _session("s", branch="feature/x", started_at=_ago(days=10))
    assert scoring.session_score(session, "feature/x", NOW) == pytest.approx(1.0 * 0.5 + 0.5 * 0.5)


def test_rank_knowledge_is_sorted_permutation() -> None:
    items = [
        _knowledge("old-other", branch="feature/y", created_at=_ago(days=90)),
        _knowledge("fresh-same", branch="feature/x", created_at=_ago(hours=2)),
        _knowledge("week-main", branch="main", created_at=_ago(days=8), usage=20),
        _knowledge("unknown", branch=None, created_at=_ago(days=2)),
    ]

    ranked = scoring.rank_knowledge(items, "feature/x", NOW)
    scores = [entry.score for entry in ranked]

    assert scores == sorted(scores, reverse=True)
    assert sorted(e.knowledge.knowledge_id for e in ranked) == sorted(i.knowledge_id for i in items)
    assert ranked[0].knowledge.knowledge_id == "fresh-same"
    assert ranked[-1].knowledge.knowledge_id == "old-other"


def test_rank_ties_keep_input_order() -> None:
    created = _ago(days=2)
    items = [_knowledge(f"k{i}", branch="main", created_at=created) for i in range(5)]

    ranked = scoring.rank_knowledge(items, "main", NOW)

    assert [e.knowledge.knowledge_id for e in ranked] == ["k0", "k1", "k2", "k3", "k4"]


def test_rank_sessions_blends_branch_and_recency() -> None:
    sessions = [
        _session("other", branch="feature/y", started_at=_ago(hours=1)),
        _session("trunk", branch="main", started_at=_ago(hours=1)),
        _session("mine", branch="feature/x", started_at=_ago(days=2)),
    ]

    ranked = scoring.rank_sessions(sessions, "feature/x", NOW)

    # mine: 1.0*0.5 + 0.8*0.5 = 0.9, trunk: 0.7*0.5 + 1.0*0.5 = 0.85
    assert [e.session.session_id for e in ranked] == ["mine", "trunk", "other"]
