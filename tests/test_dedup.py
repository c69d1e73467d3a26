from __future__ import annotations

import pytest

from synapse_memory.context import dedup
from synapse_memory.store import MemoryStore

PROJECT = "/repo"


def _promote(store: MemoryStore, title: str, content: str, **kwargs):
    return store.insert_knowledge(
        project_path=PROJECT,
        title=title,
        content=content,
        knowledge_type=kwargs.pop("knowledge_type", "decision"),
        content_hash=dedup.content_hash(content),
        **kwargs,
    )


@pytest.mark.parametrize(
    ("left", "right"),
    [
        ("Use the Repository pattern", "use the repository   pattern"),
        ("  tabs\tand\nnewlines ", "TABS AND NEWLINES"),
        ("", "   "),
    ],
)
def test_fingerprint_is_stable_under_normalization(left: str, right: str) -> None:
    assert dedup.normalize_content(left) == dedup.normalize_content(right)
    assert dedup.content_hash(left) == dedup.content_hash(right)


def test_fingerprint_is_sha256_hex() -> None:
    digest = dedup.content_hash("x")
    assert len(digest) == 64
    assert dedup.content_hash("x") != dedup.content_hash("y")


def test_levenshtein_distance() -> None:
    assert dedup.levenshtein_distance("kitten", "sitting") == 3
    assert dedup.levenshtein_distance("", "abc") == 3
    assert dedup.levenshtein_distance("same", "same") == 0


def test_title_similarity() -> None:
    assert dedup.title_similarity("", "  ") == 1.0
    assert dedup.title_similarity("Use JWT tokens", "use jwt  tokens") == 1.0
    assert dedup.title_similarity("Use JWT tokens", "Use JWT token") > 0.9
    assert dedup.title_similarity("Use JWT tokens", "Database schema design") < 0.5
    # 10 edits over the 26 characters of the longer normalized title.
    assert dedup.title_similarity(
        "Use JWT for authentication", "Use JWT for auth"
    ) == pytest.approx(1 - 10 / 26)


def test_exact_match_short_circuits(store: MemoryStore) -> None:
    original = _promote(store, "Storage layer", "Use the repository pattern")
    _promote(store, "Storage layers", "Something else entirely")

    matches = dedup.find_duplicates(store, PROJECT, "Storage layer", "USE the repository\npattern")

    assert len(matches) == 1
    assert matches[0].knowledge.knowledge_id == original.knowledge_id
    assert matches[0].similarity == 1.0
    assert matches[0].match_type == dedup.MATCH_EXACT


def test_title_matches_sorted_by_similarity(store: MemoryStore) -> None:
    _promote(store, "Use JWT tokenz", "a")
    closest = _promote(store, "Use JWT tokens", "b")
    _promote(store, "Database schema design", "c")

    matches = dedup.find_duplicates(store, PROJECT, "Use JWT tokens!", "fresh content")

    assert [m.match_type for m in matches] == [dedup.MATCH_TITLE, dedup.MATCH_TITLE]
    assert matches[0].knowledge.knowledge_id == closest.knowledge_id
    assert matches[0].similarity >= matches[1].similarity >= dedup.TITLE_SIMILARITY_THRESHOLD


def test_superseded_items_are_invisible(store: MemoryStore) -> None:
    old = _promote(store, "Cache config", "Use redis")
    new = _promote(store, "Cache configuration", "Use redis with TTLs")
    assert dedup.mark_superseded(store, old.knowledge_id, new.knowledge_id)

    matches = dedup.find_duplicates(store, PROJECT, "unrelated title", "Use redis")

    assert matches == []
    assert store.get_knowledge(old.knowledge_id).superseded_by == new.knowledge_id
    assert [k.knowledge_id for k in store.project_knowledge(PROJECT)] == [new.knowledge_id]


def test_other_projects_do_not_match(store: MemoryStore) -> None:
    store.insert_knowledge(
        project_path="/elsewhere",
        title="Same",
        content="same content",
        knowledge_type="decision",
        content_hash=dedup.content_hash("same content"),
    )
    assert dedup.find_duplicates(store, PROJECT, "Same", "same content") == []
