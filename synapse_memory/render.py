from __future__ import annotations

from typing import Any

from .event_kinds import format_detail
from .lifecycle import EndedSession, PromotionOutcome, RecallResult, SessionContext
from .store.types import PromotedKnowledge
from .store.value_metrics import TIME_SAVINGS


def format_duration(total_secs: int) -> str:
    hours, remainder = divmod(int(total_secs), 3600)
    minutes = remainder // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def render_session_context(context: SessionContext) -> str:
    session = context.session
    lines = [
        f"Session started: {session.session_id}",
        f"Project: {session.project_path}",
        f"Branch: {session.branch}",
    ]
    if context.abandoned_count > 0:
        lines.append(f"Cleaned up {context.abandoned_count} stale session(s).")

    if context.recent_sessions:
        lines += ["", "--- Recent Sessions ---"]
        for entry in context.recent_sessions:
            past = entry.session
            lines.append(f"[{past.started_at}] ({past.branch}) {past.summary or '(no summary)'}")
            for event in entry.decisions:
                lines.append(f"  Decision: {format_detail(event.detail)}")
            for event in entry.patterns:
                lines.append(f"  Pattern: {format_detail(event.detail)}")

    if context.knowledge:
        lines += ["", "--- Project Knowledge ---"]
        for entry in context.knowledge:
            item = entry.knowledge
            lines.append(f"[{item.knowledge_type}] {item.title}: {item.content}")

    if context.important_files:
        lines += ["", "--- Important Files ---"]
        for record in context.important_files:
            lines.append(
                f"  {record.file_path} (score {record.importance_score:.1f}, "
                f"{record.read_count} reads, {record.edit_count} edits)"
            )
    return "\n".join(lines)


def render_ended_session(ended: EndedSession) -> str:
    metrics = ended.metrics
    lines = [
        f"Session {ended.session.session_id} completed.",
        f"Duration: {format_duration(metrics.duration_secs)}",
        f"Events: {metrics.events_total}",
        f"Files read: {metrics.files_read}, modified: {metrics.files_modified}",
        f"Decisions: {metrics.decisions_recorded}, patterns: {metrics.patterns_discovered}, "
        f"errors resolved: {metrics.errors_resolved}",
    ]
    if ended.session.summary:
        lines.append(f"Summary: {ended.session.summary}")
    return "\n".join(lines)


def render_promotion(outcome: PromotionOutcome, *, knowledge_total: int | None = None) -> str:
    if outcome.knowledge is None and outcome.duplicates:
        best = outcome.duplicates[0]
        description = "identical content" if best.match_type == "exact" else "similar title"
        return "\n".join(
            [
                f"Duplicate detected ({description}, similarity: {best.similarity:.0%}):",
                f"  Existing: [{best.knowledge.knowledge_type}] {best.knowledge.title}",
                f"  ID: {best.knowledge.knowledge_id}",
                "",
                "To promote anyway, allow duplicates.",
                "To replace the existing item, supersede it by id.",
            ]
        )
    item = outcome.knowledge
    if item is None:
        return "Nothing promoted."
    lines = [f"Knowledge promoted: {item.title} ({item.knowledge_id})", f"Type: {item.knowledge_type}"]
    if item.branch:
        lines.append(f"Branch: {item.branch}")
    if outcome.superseded:
        lines.append(f"Superseded: {outcome.superseded}")
    if knowledge_total is not None:
        lines += ["", f"Project now has {knowledge_total} promoted knowledge item(s)."]
    return "\n".join(lines)


def render_knowledge_list(items: list[PromotedKnowledge], project_path: str) -> str:
    if not items:
        return f"No promoted knowledge found for {project_path}."
    lines = [f"Project knowledge ({len(items)} items):"]
    for item in items:
        lines += ["", f"[{item.knowledge_type}] {item.title} ({item.knowledge_id})", f"  {item.content}"]
        if item.tags:
            lines.append(f"  Tags: {', '.join(item.tags)}")
        if item.usage_count > 0:
            lines.append(f"  Used: {item.usage_count} time(s)")
    return "\n".join(lines)


def render_recall(result: RecallResult, project_path: str) -> str:
    if result.event_type and not result.query:
        if not result.events:
            return f"No {result.event_type} events found for {project_path}."
        lines = [f"Recent {result.event_type} events ({len(result.events)}):"]
        for event in result.events:
            lines.append(f"  [{event.timestamp}] {format_detail(event.detail)}")
        return "\n".join(lines)

    if not result.sessions and not result.knowledge:
        suffix = f' matching "{result.query}"' if result.query else ""
        return f"No sessions found for {project_path}{suffix}."

    lines = [f"Found {len(result.sessions)} session(s):"]
    for entry in result.sessions:
        session = entry.session
        span = f"{session.started_at} - {session.ended_at}" if session.ended_at else session.started_at
        lines += ["", f"Session: {session.session_id}", f"  Branch: {session.branch} | {span}"]
        lines.append(f"  Status: {session.status}")
        if session.summary:
            lines.append(f"  Summary: {session.summary}")
        for event in entry.events:
            lines.append(f"  [{event.event_type}] {format_detail(event.detail)}")
    if result.knowledge:
        lines += ["", f"Matching knowledge ({len(result.knowledge)}):"]
        for item in result.knowledge:
            lines.append(f"  [{item.knowledge_type}] {item.title}: {item.content}")
    return "\n".join(lines)


def render_stats(data: dict[str, Any], project_path: str) -> str:
    lines = [
        f"Project stats for {project_path} ({data['period']}):",
        "",
        f"Sessions: {data['total_sessions']}",
        f"Total time: {format_duration(data['total_duration_secs'])}",
        f"Patterns discovered: {data['patterns_discovered']}",
    ]
    if data["top_files"]:
        lines += ["", "Most-touched files:"]
        lines += [f"  {entry['path']} ({entry['count']})" for entry in data["top_files"]]
    if data["category_breakdown"]:
        lines += ["", "Event categories:"]
        lines += [f"  {entry['category']}: {entry['count']}" for entry in data["category_breakdown"]]
    if data.get("agents"):
        lines += ["", "Agents:"]
        lines += [f"  {entry['agent_type']}: {entry['session_count']}" for entry in data["agents"]]
    return "\n".join(lines)


def render_value_report(summary: dict[str, Any], project_path: str) -> str:
    counts = summary["knowledge"]
    by_type = counts["by_type"]
    breakdown = summary["breakdown"]
    hours, minutes = divmod(summary["time_saved_minutes"], 60)
    saved = f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"
    rate = summary["hourly_rate"]
    return "\n".join(
        [
            "--- synapse-memory Value Report ---",
            f"Project: {project_path}",
            "",
            f"Sessions tracked: {summary['total_sessions']}",
            f"Knowledge items: {counts['total']} ({by_type['decision']} decisions, "
            f"{by_type['pattern']} patterns, {by_type['error_resolved']} errors resolved)",
            "",
            "Value delivered:",
            f"  Knowledge surfaced: {breakdown['knowledge_surfaced']} times across sessions",
            f"  Decisions recalled via search: {breakdown['decisions_recalled']} times",
            f"  Patterns applied: {breakdown['patterns_applied']} times",
            f"  Errors prevented: {breakdown['errors_prevented']} times",
            "",
            "Time savings estimate:",
            f"  {saved} saved (~${summary['estimated_value_usd']:.2f} at ${rate:g}/hr)",
            "",
            "Calculation basis:",
            f"  - Each knowledge surface: ~{TIME_SAVINGS['knowledge_surfaced'] // 60} min",
            f"  - Each decision recall: ~{TIME_SAVINGS['decision_recalled'] // 60} min",
            f"  - Each pattern application: ~{TIME_SAVINGS['pattern_applied'] // 60} min",
            f"  - Each error prevention: ~{TIME_SAVINGS['error_prevented'] // 60} min",
        ]
    )
