"""
Unit tests -- in-process filter operators and date handling.
"""
from datetime import datetime, timezone

import pytest
from report_engine.reports.dates import parse_timestamp, resolve_bounds, truncate, within_bounds
from report_engine.reports.filters import matches
from report_engine.reports.spec import DateRange, Filter


def _f(op, value=None, value2=None) -> Filter:
    return Filter(field="x", operator=op, value=value, value2=value2)


# ── Operators ────────────────────────────────────────────

def test_equals_and_not_equals():
    assert matches("delivered", _f("equals", "delivered"))
    assert not matches("cancelled", _f("equals", "delivered"))
    assert matches("cancelled", _f("not_equals", "delivered"))


def test_contains_is_case_insensitive():
    assert matches("Acme Corp", _f("contains", "acme"))
    assert not matches("Globex", _f("contains", "acme"))
    assert not matches(None, _f("contains", "acme"))


@pytest.mark.parametrize("op, value, expected", [
    ("gt", 10, True),
    ("gt", 15, False),
    ("gte", 15, True),
    ("lt", 20, True),
    ("lte", 15, True),
    ("lte", 14, False),
])
def test_numeric_comparisons(op, value, expected):
    assert matches(15, _f(op, value)) is expected


def test_numeric_strings_compare_numerically():
    assert matches("100", _f("gt", 20))


def test_dates_compare_chronologically():
    assert matches("2024-03-01", _f("gt", "2024-02-15"))
    assert not matches("2024-01-01T10:00:00Z", _f("gte", "2024-01-02"))


def test_in_and_not_in():
    assert matches("a", _f("in", ["a", "b"]))
    assert not matches("c", _f("in", ["a", "b"]))
    assert matches("c", _f("not_in", ["a", "b"]))


def test_between_is_inclusive():
    assert matches(10, _f("between", 10, 20))
    assert matches(20, _f("between", 10, 20))
    assert not matches(21, _f("between", 10, 20))


def test_missing_value_fails_comparisons():
    assert not matches(None, _f("gt", 0))
    assert not matches(None, _f("between", 0, 10))
    assert matches(None, _f("not_equals", "x"))


# ── Timestamps & bounds ─────────────────────────────────

def test_parse_naive_is_utc():
    ts = parse_timestamp("2024-05-01T12:00:00")
    assert ts.tzinfo == timezone.utc


def test_parse_z_suffix():
    assert parse_timestamp("2024-05-01T12:00:00Z") == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)


def test_parse_garbage_returns_none():
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(42) is None


def test_date_only_end_covers_whole_day():
    bounds = resolve_bounds(DateRange(start="2024-01-01", end="2024-01-31"))
    assert within_bounds("2024-01-31T23:59:59", bounds)
    assert not within_bounds("2024-02-01T00:00:00", bounds)
    assert within_bounds("2024-01-01T00:00:00", bounds)
    assert not within_bounds("2023-12-31T23:59:59", bounds)


def test_datetime_end_is_inclusive():
    bounds = resolve_bounds(DateRange(start="2024-01-01T00:00:00", end="2024-01-01T12:00:00"))
    assert within_bounds("2024-01-01T12:00:00", bounds)
    assert not within_bounds("2024-01-01T12:00:01", bounds)


def test_resolve_bounds_rejects_garbage():
    with pytest.raises(ValueError):
        resolve_bounds(DateRange(start="soon", end="2024-01-01"))


def test_rows_without_timestamp_fall_outside():
    bounds = resolve_bounds(DateRange(start="2024-01-01", end="2024-01-31"))
    assert not within_bounds(None, bounds)


# ── Truncation ───────────────────────────────────────────

@pytest.mark.parametrize("granularity, expected", [
    ("day", "2024-05-15"),
    ("week", "2024-05-13"),
    ("month", "2024-05-01"),
    ("quarter", "2024-04-01"),
    ("year", "2024-01-01"),
])
def test_truncate(granularity, expected):
    assert truncate("2024-05-15T18:30:00Z", granularity) == expected


def test_truncate_without_granularity_is_identity():
    assert truncate("2024-05-15T18:30:00Z", None) == "2024-05-15T18:30:00Z"
