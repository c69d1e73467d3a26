from __future__ import annotations

import datetime as dt

PERIOD_DAYS = {"day": 1, "week": 7, "month": 30}


def parse_iso8601(value: str) -> dt.datetime | None:
    raw = value.strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = dt.datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.UTC)
    return parsed.astimezone(dt.UTC)


def age_days(timestamp: str, now: dt.datetime) -> float:
    """Fractional days between ``timestamp`` and ``now``; unparsable stamps count as fresh."""

    parsed = parse_iso8601(timestamp)
    if parsed is None:
        return 0.0
    return (now - parsed).total_seconds() / 86400


def period_since(period: str, now: dt.datetime) -> str | None:
    if period == "all":
        return None
    days = PERIOD_DAYS.get(period)
    if days is None:
        raise ValueError(
            f"Invalid period '{period}'. Allowed periods: day, week, month, all"
        )
    return (now - dt.timedelta(days=days)).isoformat()


def contains_pattern(text: str) -> str:
    """LIKE pattern matching ``text`` literally anywhere; use with ``ESCAPE '\\'``."""

    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
