from __future__ import annotations

import pytest

from synapse_memory.store import MemoryStore
from synapse_memory.store.file_importance import compute_importance_score

PROJECT = "/repo"


def test_reads_and_edits_accumulate(store: MemoryStore) -> None:
    for _ in range(2):
        store.upsert_file_access(PROJECT, "src/app.py", "read")
    for _ in range(3):
        record = store.upsert_file_access(PROJECT, "src/app.py", "edit")

    assert record.read_count == 2
    assert record.edit_count == 3
    assert record.importance_score == pytest.approx(11.0)
    assert store.get_file_importance(PROJECT, "src/app.py") == record


def test_an_edit_weighs_three_reads(store: MemoryStore) -> None:
    read = store.upsert_file_access(PROJECT, "read.py", "read")
    edited = store.upsert_file_access(PROJECT, "edit.py", "edit")

    assert edited.importance_score == pytest.approx(read.importance_score * 3)
    assert [f.file_path for f in store.important_files(PROJECT)] == ["edit.py", "read.py"]


def test_unknown_access_is_rejected(store: MemoryStore) -> None:
    with pytest.raises(ValueError):
        store.upsert_file_access(PROJECT, "a.py", "delete")
    assert store.get_file_importance(PROJECT, "a.py") is None


def test_score_halves_every_week(clock) -> None:
    accessed = clock().isoformat()
    clock.advance(days=7)

    assert compute_importance_score(4, 0, accessed, clock()) == pytest.approx(2.0)
    clock.advance(days=7)
    assert compute_importance_score(4, 0, accessed, clock()) == pytest.approx(1.0)


def test_refresh_applies_decay(store: MemoryStore, clock) -> None:
    store.upsert_file_access(PROJECT, "a.py", "edit")
    store.upsert_file_access(PROJECT, "b.py", "read")

    assert store.refresh_importance_scores(PROJECT) == 0

    clock.advance(days=7)
    assert store.refresh_importance_scores(PROJECT) == 2
    assert store.get_file_importance(PROJECT, "a.py").importance_score == pytest.approx(1.5)
    assert store.get_file_importance(PROJECT, "b.py").importance_score == pytest.approx(0.5)


def test_refresh_skips_negligible_changes(store: MemoryStore, clock) -> None:
    store.upsert_file_access(PROJECT, "a.py", "read")
    # One minute of decay on a score of 1 moves it by well under 0.01.
    clock.advance(minutes=1)

    assert store.refresh_importance_scores(PROJECT) == 0
    assert store.get_file_importance(PROJECT, "a.py").importance_score == pytest.approx(1.0)
