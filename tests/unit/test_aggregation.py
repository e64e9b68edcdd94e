"""
Unit tests -- in-process grouping and aggregation.
"""
import pytest
from report_engine.catalog.loader import load_report_catalog
from report_engine.core.errors import AggregationError
from report_engine.reports.aggregation import aggregate_rows, aggregate_values, group_rows
from report_engine.reports.plan import build_record_query
from report_engine.reports.spec import ReportSpec


def _query(dims, metrics, source="orders"):
    catalog = load_report_catalog()
    spec = ReportSpec.model_validate({"dimensions": dims, "metrics": metrics})
    return build_record_query(spec, catalog.source(source), catalog)


# ── aggregate_values ─────────────────────────────────────

@pytest.mark.parametrize("aggregation", ["sum", "avg", "min", "max"])
def test_empty_partition_yields_zero(aggregation):
    assert aggregate_values(aggregation, [], 0) == 0


def test_count_is_row_count():
    assert aggregate_values("count", [None, "x", 3], 3) == 3
    assert aggregate_values("count", [], 0) == 0


def test_count_distinct():
    assert aggregate_values("count_distinct", ["A", "A", "B"], 3) == 2


def test_count_distinct_ignores_missing():
    assert aggregate_values("count_distinct", ["A", None, None], 3) == 1


def test_non_numeric_values_are_discarded():
    assert aggregate_values("sum", [10, "abc", None, "5"], 4) == 15
    assert aggregate_values("avg", [10, "abc", 20], 3) == 15


def test_min_max():
    assert aggregate_values("min", [3, 1, 2], 3) == 1
    assert aggregate_values("max", [3, 1, 2], 3) == 3


def test_unknown_aggregation():
    with pytest.raises(AggregationError):
        aggregate_values("median", [1, 2], 2)


# ── aggregate_rows ───────────────────────────────────────

ROWS = [
    {"category": "A", "total": 10, "customer_id": 1, "created_at": "2024-01-05T10:00:00Z"},
    {"category": "B", "total": 20, "customer_id": 2, "created_at": "2024-01-20T10:00:00Z"},
    {"category": "A", "total": 30, "customer_id": 1, "created_at": "2024-02-03T10:00:00Z"},
]


def test_groups_in_first_seen_order():
    query = _query([{"field": "category"}], [{"field": "revenue", "aggregation": "sum"}])
    assert aggregate_rows(ROWS, query) == [
        {"category": "A", "revenue": 40},
        {"category": "B", "revenue": 20},
    ]


def test_multiple_metrics_per_group():
    query = _query(
        [{"field": "category"}],
        [
            {"field": "orders", "aggregation": "count"},
            {"field": "avg_order_value", "aggregation": "avg"},
            {"field": "unique_customers", "aggregation": "count_distinct"},
        ],
    )
    rows = aggregate_rows(ROWS, query)
    assert rows[0] == {"category": "A", "orders": 2, "avg_order_value": 20, "unique_customers": 1}


def test_date_dimension_is_bucketed():
    query = _query(
        [{"field": "date", "type": "date", "granularity": "month"}],
        [{"field": "revenue", "aggregation": "sum"}],
    )
    assert aggregate_rows(ROWS, query) == [
        {"date": "2024-01-01", "revenue": 30},
        {"date": "2024-02-01", "revenue": 30},
    ]


def test_missing_dimension_value_forms_its_own_group():
    rows = ROWS + [{"total": 5}]
    query = _query([{"field": "category"}], [{"field": "revenue", "aggregation": "sum"}])
    result = aggregate_rows(rows, query)
    assert result[-1] == {"category": None, "revenue": 5}


def test_no_rows_no_groups():
    query = _query([{"field": "category"}], [{"field": "revenue", "aggregation": "sum"}])
    assert aggregate_rows([], query) == []


def test_no_grouping_yields_single_row():
    query = _query([{"field": "category"}], [{"field": "revenue", "aggregation": "sum"}])
    query.group_by = []
    assert aggregate_rows(ROWS, query) == [{"revenue": 60}]
    assert aggregate_rows([], query) == [{"revenue": 0}]


def test_unhashable_group_value_raises():
    query = _query([{"field": "category"}], [{"field": "orders", "aggregation": "count"}])
    with pytest.raises(AggregationError):
        group_rows([{"category": ["A", "B"]}], query.group_by, query)
