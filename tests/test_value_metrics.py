from __future__ import annotations

import pytest

from synapse_memory.store import MemoryStore
from synapse_memory.store.value_metrics import TIME_SAVINGS

PROJECT = "/repo"


def test_time_savings_table() -> None:
    assert TIME_SAVINGS == {
        "knowledge_surfaced": 60,
        "decision_recalled": 180,
        "pattern_applied": 300,
        "error_prevented": 900,
    }


def test_no_metrics_row_until_first_increment(store: MemoryStore) -> None:
    assert store.get_value_metrics(PROJECT) is None

    summary = store.value_summary(PROJECT)

    assert summary["time_saved_minutes"] == 0
    assert summary["estimated_value_usd"] == 0
    assert set(summary["breakdown"].values()) == {0}


def test_counters_accumulate_time_saved(store: MemoryStore) -> None:
    store.increment_session_count(PROJECT)
    store.increment_context_reuse(PROJECT)
    store.increment_knowledge_surfaced(PROJECT, 3)
    store.increment_decision_recall(PROJECT)
    store.increment_pattern_applied(PROJECT)
    store.increment_error_prevented(PROJECT)

    metrics = store.get_value_metrics(PROJECT)

    assert metrics.total_sessions == 1
    assert metrics.context_reuse_count == 1
    assert metrics.knowledge_surfaced_count == 3
    assert metrics.estimated_time_saved_secs == 3 * 60 + 180 + 300 + 900


def test_summary_rounds_money_and_floors_minutes(store: MemoryStore) -> None:
    # 60 + 180 + 300 seconds = 9 minutes
    store.increment_knowledge_surfaced(PROJECT)
    store.increment_decision_recall(PROJECT)
    store.increment_pattern_applied(PROJECT)

    summary = store.value_summary(PROJECT, hourly_rate=100.0)

    assert summary["time_saved_minutes"] == 9
    assert summary["estimated_value_usd"] == pytest.approx(15.0)
    assert summary["breakdown"] == {
        "knowledge_surfaced": 1,
        "decisions_recalled": 1,
        "patterns_applied": 1,
        "errors_prevented": 0,
    }


def test_counters_are_per_project(store: MemoryStore) -> None:
    store.increment_session_count(PROJECT)
    store.increment_session_count("/other")
    store.increment_session_count("/other")

    assert store.get_value_metrics(PROJECT).total_sessions == 1
    assert store.get_value_metrics("/other").total_sessions == 2
