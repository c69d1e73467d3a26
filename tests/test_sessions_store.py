from __future__ import annotations

from synapse_memory.event_kinds import DecisionDetail, FileOpDetail, PatternDetail, ToolCallDetail

from synapse_memory.store import MemoryStore

PROJECT = "/repo"


def test_end_session_only_completes_active(store: MemoryStore, clock) -> None:
    session = store.create_session(project_path=PROJECT, branch="main")
    clock.advance(minutes=30)

    ended = store.end_session(session.session_id, summary="first", git_commit_end="abc")
    again = store.end_session(session.session_id, summary="second")

    assert ended is not None
    assert ended.status == "completed"
    assert ended.ended_at == clock().isoformat()
    assert again is None
    assert store.get_session(session.session_id).summary == "first"
    assert store.end_session("missing") is None


def test_abandon_only_touches_active_sessions_of_project(store: MemoryStore) -> None:
    done = store.create_session(project_path=PROJECT, branch="main")
    store.end_session(done.session_id)
    first = store.create_session(project_path=PROJECT, branch="main")
    second = store.create_session(project_path=PROJECT, branch="dev")
    elsewhere = store.create_session(project_path="/other", branch="main")

    assert store.abandon_active_sessions(PROJECT) == 2

    assert store.get_session(done.session_id).status == "completed"
    assert store.get_session(first.session_id).status == "abandoned"
    assert store.get_session(second.session_id).status == "abandoned"
    assert store.get_session(elsewhere.session_id).status == "active"
    assert store.get_active_session(PROJECT) is None


def test_recent_sessions_newest_first_completed_only(store: MemoryStore, clock) -> None:
    ids = []
    for branch in ("main", "dev", "main"):
        session = store.create_session(project_path=PROJECT, branch=branch)
        store.end_session(session.session_id)
        ids.append(session.session_id)
        clock.advance(hours=1)
    store.create_session(project_path=PROJECT, branch="main")

    recent = store.recent_sessions(PROJECT)
    on_main = store.recent_sessions(PROJECT, branch="main", limit=1)

    assert [s.session_id for s in recent] == list(reversed(ids))
    assert [s.session_id for s in on_main] == [ids[2]]


def test_search_sessions_matches_summary_any_status(store: MemoryStore) -> None:
    done = store.create_session(project_path=PROJECT, branch="main")
    store.end_session(done.session_id, summary="Built storage layer")
    store.create_session(project_path=PROJECT, branch="main")

    assert [s.session_id for s in store.search_sessions(PROJECT, query="storage")] == [
        done.session_id
    ]
    assert store.search_sessions(PROJECT, query="nothing like this") == []


def test_events_are_returned_in_causal_order(store: MemoryStore, clock) -> None:
    session = store.create_session(project_path=PROJECT, branch="main")
    first = store.insert_event(session.session_id, DecisionDetail(title="a", rationale="b"))
    clock.advance(seconds=5)
    second = store.insert_event(session.session_id, PatternDetail(description="p"))
    third = store.insert_event(session.session_id, DecisionDetail(title="c", rationale="d"))

    events = store.session_events(session.session_id)
    decisions = store.session_events(session.session_id, event_type="decision")

    assert [e.event_id for e in events] == [first.event_id, second.event_id, third.event_id]
    assert [e.event_id for e in decisions] == [first.event_id, third.event_id]
    assert store.get_event(second.event_id) == second
    assert store.get_event("missing") is None
    assert events[0].detail == DecisionDetail(title="a", rationale="b")


def test_metrics_for_session_without_events_are_zero(store: MemoryStore, clock) -> None:
    session = store.create_session(project_path=PROJECT, branch="main")
    clock.advance(seconds=90)

    metrics = store.compute_metrics(session.session_id)

    assert metrics is not None
    assert metrics.duration_secs == 90
    assert metrics.events_total == 0
    assert set(metrics.events_by_category.values()) == {0}
    assert metrics.files_read == 0
    assert metrics.files_modified == 0
    assert store.compute_metrics("missing") is None


def test_metrics_count_distinct_files(store: MemoryStore, clock) -> None:
    session = store.create_session(project_path=PROJECT, branch="main")
    for detail in (
        FileOpDetail(path="a.py", operation="read"),
        FileOpDetail(path="a.py", operation="read"),
        FileOpDetail(path="b.py", operation="read"),
        FileOpDetail(path="a.py", operation="edit"),
        FileOpDetail(path="c.py", operation="write"),
        FileOpDetail(path="a.py", operation="write"),
        ToolCallDetail(tool_name="pytest"),
        DecisionDetail(title="t", rationale="r"),
    ):
        store.insert_event(session.session_id, detail)
    clock.advance(hours=1)
    store.end_session(session.session_id)

    metrics = store.compute_metrics(session.session_id)

    assert metrics.duration_secs == 3600
    assert metrics.events_total == 8
    assert metrics.events_by_category["read"] == 3
    assert metrics.events_by_category["edit"] == 3
    assert metrics.events_by_category["execute"] == 1
    assert metrics.events_by_category["other"] == 1
    assert metrics.files_read == 2
    assert metrics.files_modified == 2
    assert metrics.decisions_recorded == 1


def test_session_stats(store: MemoryStore, clock) -> None:
    session = store.create_session(project_path=PROJECT, branch="main", agent_type="cursor")
    store.insert_event(session.session_id, FileOpDetail(path="a.py", operation="read"))
    store.insert_event(session.session_id, FileOpDetail(path="a.py", operation="edit"))
    store.insert_event(session.session_id, FileOpDetail(path="b.py", operation="read"))
    store.insert_event(session.session_id, PatternDetail(description="p"))
    clock.advance(minutes=10)
    store.end_session(session.session_id)
    store.create_session(project_path=PROJECT, branch="main")

    stats = store.session_stats(PROJECT)

    assert stats["total_sessions"] == 2
    assert stats["total_duration_secs"] == 600
    assert stats["top_files"][0] == {"path": "a.py", "count": 2}
    assert stats["category_breakdown"][0] == {"category": "read", "count": 2}
    assert stats["patterns_discovered"] == 1
    assert store.agent_stats(PROJECT) == [
        {"agent_type": "cursor", "session_count": 1},
        {"agent_type": "unknown", "session_count": 1},
    ]
    assert store.session_stats(PROJECT, since=clock().isoformat())["total_sessions"] == 1


def test_search_sessions_treats_wildcards_literally(store: MemoryStore) -> None:
    percent = store.create_session(project_path=PROJECT, branch="main")
    store.end_session(percent.session_id, summary="Coverage at 100% now")
    underscore = store.create_session(project_path=PROJECT, branch="main")
    store.end_session(underscore.session_id, summary="Renamed user_id column")
    plain = store.create_session(project_path=PROJECT, branch="main")
    store.end_session(plain.session_id, summary="Renamed userXid helper")

    assert [s.session_id for s in store.search_sessions(PROJECT, query="100%")] == [
        percent.session_id
    ]
    assert [s.session_id for s in store.search_sessions(PROJECT, query="user_id")] == [
        underscore.session_id
    ]
    assert store.search_sessions(PROJECT, query="%") == [
        store.get_session(percent.session_id)
    ]
