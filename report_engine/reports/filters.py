"""
In-process filter evaluation, mirroring the SQL predicate semantics:

  equals / not_equals   strict equality
  contains              case-insensitive substring (ILIKE %v%)
  gt / gte / lt / lte   numeric when both sides are numeric, else date, else text
  in / not_in           list membership
  between               value <= x <= value2

A missing row value never matches a comparison (SQL NULL semantics), except
for not_equals / not_in, which treat it as "different".
"""
from __future__ import annotations

from typing import Any

from report_engine.reports.dates import parse_timestamp
from report_engine.reports.fields import to_number
from report_engine.reports.spec import Filter


def _comparable(left: Any, right: Any) -> tuple[Any, Any] | None:
    if not isinstance(left, (dict, list)) and not isinstance(right, (dict, list)):
        ln, rn = to_number(left), to_number(right)
        if ln is not None and rn is not None:
            return ln, rn
    lt, rt = parse_timestamp(left), parse_timestamp(right)
    if lt is not None and rt is not None:
        return lt, rt
    if left is None or right is None:
        return None
    return str(left), str(right)


def _compare(left: Any, right: Any) -> int | None:
    pair = _comparable(left, right)
    if pair is None:
        return None
    a, b = pair
    return (a > b) - (a < b)


def matches(value: Any, flt: Filter) -> bool:
    """True if a row whose field holds *value* passes *flt*."""
    op = flt.operator

    if op == "equals":
        return value == flt.value
    if op == "not_equals":
        return value != flt.value
    if op == "contains":
        if value is None:
            return False
        return str(flt.value).lower() in str(value).lower()
    if op == "in":
        return value in (flt.value or [])
    if op == "not_in":
        return value not in (flt.value or [])

    if value is None:
        return False

    if op == "between":
        low, high = _compare(value, flt.value), _compare(value, flt.value2)
        return low is not None and high is not None and low >= 0 and high <= 0

    cmp = _compare(value, flt.value)
    if cmp is None:
        return False
    if op == "gt":
        return cmp > 0
    if op == "gte":
        return cmp >= 0
    if op == "lt":
        return cmp < 0
    if op == "lte":
        return cmp <= 0
    raise ValueError(f"Unsupported filter operator '{op}'")
