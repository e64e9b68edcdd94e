"""
Date-range resolution and date bucketing.

All comparisons happen on timezone-aware datetimes; naive values are taken
to be UTC.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from report_engine.reports.spec import DateRange


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_date_only(value: str) -> bool:
    return len(value.strip()) == 10


def parse_timestamp(value: Any) -> datetime | None:
    """Best-effort conversion of a row or spec value to an aware datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return _as_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def resolve_bounds(date_range: DateRange) -> tuple[datetime, datetime, bool]:
    """Convert a DateRange to ``(start, end, end_inclusive)``.

    A date-only ``end`` becomes midnight of the following day with an
    exclusive bound, so the whole end day is covered.

    Raises ValueError when either bound is unparseable.
    """
    start = parse_timestamp(date_range.start)
    end = parse_timestamp(date_range.end)
    if start is None:
        raise ValueError(f"Unparseable date range start {date_range.start!r}")
    if end is None:
        raise ValueError(f"Unparseable date range end {date_range.end!r}")
    if is_date_only(date_range.end):
        return start, end + timedelta(days=1), False
    return start, end, True


def within_bounds(value: Any, bounds: tuple[datetime, datetime, bool]) -> bool:
    ts = parse_timestamp(value)
    if ts is None:
        return False
    start, end, end_inclusive = bounds
    if ts < start:
        return False
    return ts <= end if end_inclusive else ts < end


def truncate(value: Any, granularity: str | None) -> Any:
    """Bucket a date value to the ISO start date of its period.

    Values that are not dates are returned unchanged; so is everything when
    *granularity* is None.
    """
    if granularity is None:
        return value
    ts = parse_timestamp(value)
    if ts is None:
        return value
    day = ts.date()
    if granularity == "day":
        start = day
    elif granularity == "week":
        start = day - timedelta(days=day.weekday())
    elif granularity == "month":
        start = day.replace(day=1)
    elif granularity == "quarter":
        start = day.replace(month=(day.month - 1) // 3 * 3 + 1, day=1)
    elif granularity == "year":
        start = day.replace(month=1, day=1)
    else:
        raise ValueError(f"Unknown granularity '{granularity}'")
    return start.isoformat()
