"""Time and rounding helpers shared by the engine and the dashboard."""

import math
from datetime import date, datetime, timezone
from typing import Union


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_iso(value: Union[str, date, datetime]) -> datetime:
    """
    Parse an ISO 8601 date or timestamp into an aware UTC datetime.

    Plain dates become midnight UTC. Naive timestamps are taken as UTC.
    A trailing ``Z`` is accepted.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def whole_days_between(start: datetime, end: datetime) -> int:
    """Number of whole days from ``start`` to ``end`` (negative if end is earlier)."""
    delta = parse_iso(end) - parse_iso(start)
    return delta.days


def whole_months_between(start: date, end: date) -> int:
    """Number of whole calendar months from ``start`` to ``end``."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return max(months, 0)
