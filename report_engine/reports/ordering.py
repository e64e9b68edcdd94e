"""
Sort & paginate, applied after aggregation.
"""
from __future__ import annotations

from datetime import date
from functools import cmp_to_key
from typing import Any

from report_engine.reports.dates import parse_timestamp
from report_engine.reports.fields import to_number
from report_engine.reports.spec import Sort


def compare_values(a: Any, b: Any) -> int:
    """Strings collate case-insensitively, dates and datetimes chronologically;
    everything else compares as a number (missing and non-numeric values count as 0)."""
    if isinstance(a, str) and isinstance(b, str):
        ka, kb = (a.casefold(), a), (b.casefold(), b)
        return (ka > kb) - (ka < kb)
    if isinstance(a, date) or isinstance(b, date):
        ta, tb = parse_timestamp(a), parse_timestamp(b)
        if ta is not None and tb is not None:
            return (ta > tb) - (ta < tb)
    na = to_number(a) if not isinstance(a, (dict, list)) else None
    nb = to_number(b) if not isinstance(b, (dict, list)) else None
    na, nb = na or 0, nb or 0
    return (na > nb) - (na < nb)


def sort_rows(rows: list[dict[str, Any]], sorting: list[Sort]) -> list[dict[str, Any]]:
    """Stable multi-key sort; the first key that differs decides.

    With no sort keys the input order (grouping order) is kept.
    """
    if not sorting:
        return list(rows)

    def _cmp(left: dict[str, Any], right: dict[str, Any]) -> int:
        for key in sorting:
            result = compare_values(left.get(key.field), right.get(key.field))
            if result:
                return result if key.direction == "asc" else -result
        return 0

    return sorted(rows, key=cmp_to_key(_cmp))


def paginate(rows: list[dict[str, Any]], limit: int | None = None, offset: int | None = None) -> list[dict[str, Any]]:
    """Slice ``rows[offset : offset + limit]``; no limit keeps everything from offset."""
    start = offset or 0
    if not limit:
        return rows[start:]
    return rows[start:start + limit]
