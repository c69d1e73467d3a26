from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Final, Union

EVENT_TYPES: Final[tuple[str, ...]] = (
    "file_read",
    "file_write",
    "file_edit",
    "tool_call",
    "decision",
    "pattern",
    "error_resolved",
    "milestone",
)

EVENT_CATEGORIES: Final[tuple[str, ...]] = (
    "read",
    "search",
    "edit",
    "execute",
    "agent",
    "other",
)

KNOWLEDGE_TYPES: Final[tuple[str, ...]] = (
    "decision",
    "pattern",
    "error_resolved",
    "milestone",
)

FILE_OPERATIONS: Final[tuple[str, ...]] = ("read", "write", "edit")

_CATEGORY_BY_TYPE: Final[dict[str, str]] = {
    "file_read": "read",
    "file_write": "edit",
    "file_edit": "edit",
    "tool_call": "execute",
    "decision": "other",
    "pattern": "other",
    "error_resolved": "other",
    "milestone": "other",
}


@dataclass(frozen=True)
class FileOpDetail:
    kind: ClassVar[str] = "file_op"
    path: str
    operation: str

    def __post_init__(self) -> None:
        if self.operation not in FILE_OPERATIONS:
            raise ValueError(
                f"Invalid file operation '{self.operation}'. "
                f"Allowed operations: {', '.join(FILE_OPERATIONS)}"
            )


@dataclass(frozen=True)
class ToolCallDetail:
    kind: ClassVar[str] = "tool_call"
    tool_name: str
    params: str | None = None


@dataclass(frozen=True)
class DecisionDetail:
    kind: ClassVar[str] = "decision"
    title: str
    rationale: str


@dataclass(frozen=True)
class PatternDetail:
    kind: ClassVar[str] = "pattern"
    description: str
    files: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ErrorResolvedDetail:
    kind: ClassVar[str] = "error_resolved"
    error: str
    resolution: str
    files: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class MilestoneDetail:
    kind: ClassVar[str] = "milestone"
    summary: str


EventDetail = Union[
    FileOpDetail,
    ToolCallDetail,
    DecisionDetail,
    PatternDetail,
    ErrorResolvedDetail,
    MilestoneDetail,
]

_DETAIL_CLASSES: Final[dict[str, type]] = {
    cls.kind: cls
    for cls in (
        FileOpDetail,
        ToolCallDetail,
        DecisionDetail,
        PatternDetail,
        ErrorResolvedDetail,
        MilestoneDetail,
    )
}


def derive_event_type(detail: EventDetail) -> str:
    """Event type is a function of the detail payload alone."""

    if isinstance(detail, FileOpDetail):
        if detail.operation == "read":
            return "file_read"
        if detail.operation == "write":
            return "file_write"
        return "file_edit"
    if isinstance(detail, ToolCallDetail):
        return "tool_call"
    if isinstance(detail, DecisionDetail):
        return "decision"
    if isinstance(detail, PatternDetail):
        return "pattern"
    if isinstance(detail, ErrorResolvedDetail):
        return "error_resolved"
    if isinstance(detail, MilestoneDetail):
        return "milestone"
    raise TypeError(f"Unsupported event detail: {type(detail).__name__}")


def categorize_event(event_type: str) -> str:
    try:
        return _CATEGORY_BY_TYPE[event_type]
    except KeyError:
        raise ValueError(
            f"Invalid event type '{event_type}'. Allowed types: {', '.join(EVENT_TYPES)}"
        ) from None


def validate_event_type(event_type: str) -> str:
    normalized = (event_type or "").strip().lower().replace("-", "_")
    if normalized in EVENT_TYPES:
        return normalized
    raise ValueError(
        f"Invalid event type '{normalized}'. Allowed types: {', '.join(EVENT_TYPES)}"
    )


def validate_knowledge_type(knowledge_type: str) -> str:
    normalized = (knowledge_type or "").strip().lower().replace("-", "_")
    if normalized in KNOWLEDGE_TYPES:
        return normalized
    raise ValueError(
        f"Invalid knowledge type '{normalized}'. Allowed types: {', '.join(KNOWLEDGE_TYPES)}"
    )


def parse_detail(data: Mapping[str, Any]) -> EventDetail:
    """Build a detail variant from its JSON form, keyed by ``type``."""

    kind = data.get("type")
    cls = _DETAIL_CLASSES.get(str(kind))
    if cls is None:
        raise ValueError(
            f"Invalid event detail type {kind!r}. Allowed types: {', '.join(_DETAIL_CLASSES)}"
        )
    fields = {key: value for key, value in data.items() if key != "type"}
    if "files" in fields:
        files = fields["files"] or []
        if not isinstance(files, list):
            raise ValueError(
                f"Invalid {kind} detail: files must be a list, got {type(files).__name__}"
            )
        fields["files"] = [str(item) for item in files]
    try:
        return cls(**fields)
    except TypeError as exc:
        raise ValueError(f"Invalid {kind} detail: {exc}") from exc


def detail_to_dict(detail: EventDetail) -> dict[str, Any]:
    return {"type": detail.kind, **asdict(detail)}


def format_detail(detail: EventDetail) -> str:
    if isinstance(detail, FileOpDetail):
        return f"{detail.operation} {detail.path}"
    if isinstance(detail, ToolCallDetail):
        return f"{detail.tool_name} ({detail.params})" if detail.params else detail.tool_name
    if isinstance(detail, DecisionDetail):
        return f"{detail.title}: {detail.rationale}"
    if isinstance(detail, PatternDetail):
        return detail.description
    if isinstance(detail, ErrorResolvedDetail):
        return f"{detail.error} -> {detail.resolution}"
    return detail.summary
