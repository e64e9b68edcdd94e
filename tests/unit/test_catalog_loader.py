"""
Unit tests -- report catalog YAML loader and look-ups.
"""
import pytest
from report_engine.catalog.loader import (
    ReportCatalog,
    load_report_catalog,
    list_dimensions,
    list_metrics,
)


@pytest.fixture(scope="module")
def catalog() -> ReportCatalog:
    return load_report_catalog()


def test_loads_successfully(catalog):
    assert catalog.version == 1
    assert len(catalog.dimensions) > 0
    assert len(catalog.metrics) > 0


def test_expected_dimensions(catalog):
    for name in ["date", "category", "channel", "status", "product_name",
                 "customer_name", "region", "payment_method"]:
        assert name in catalog.dimensions, f"Missing dimension: {name}"


def test_expected_metrics(catalog):
    for name in ["revenue", "orders", "avg_order_value", "profit",
                 "profit_margin", "units_sold", "unique_customers", "new_customers"]:
        assert name in catalog.metrics, f"Missing metric: {name}"


def test_metric_defaults(catalog):
    revenue = catalog.metric("revenue")
    assert revenue.aggregation == "sum"
    assert revenue.format == "currency"
    assert catalog.metric("unique_customers").aggregation == "count_distinct"
    assert catalog.metric("profit_margin").format == "percentage"


def test_date_dimension_has_granularity(catalog):
    date = catalog.dimension("date")
    assert date.type == "date"
    assert date.granularity == "day"


def test_sources_in_priority_order(catalog):
    assert [s.name for s in catalog.sources] == ["orders", "products", "customers", "daily_metrics"]


def test_daily_metrics_timestamp_column(catalog):
    assert catalog.source("daily_metrics").timestamp_column == "date"
    assert catalog.source("orders").timestamp_column == "created_at"


def test_unknown_lookups_return_none(catalog):
    assert catalog.dimension("nonexistent") is None
    assert catalog.metric("nonexistent") is None
    assert catalog.source("nonexistent") is None


def test_is_known_field(catalog):
    assert catalog.is_known_field("revenue")
    assert catalog.is_known_field("category")
    assert catalog.is_known_field("total")          # source column
    assert catalog.is_known_field("total.amount")   # dotted path on a column
    assert not catalog.is_known_field("bogus_field")
    assert not catalog.is_known_field("bogus.path")


def test_column_for_date_uses_source_timestamp(catalog):
    assert catalog.column_for("date", catalog.source("orders")) == "created_at"
    assert catalog.column_for("date", catalog.source("daily_metrics")) == "date"


def test_column_for_metric_override(catalog):
    orders = catalog.source("orders")
    assert catalog.column_for("unique_customers", orders) == "customer_id"
    assert catalog.column_for("category", orders) == "category"


def test_list_helpers_return_spec_models():
    dims = list_dimensions()
    mets = list_metrics()
    assert dims[0].field == "date"
    assert {m.field for m in mets} >= {"revenue", "orders"}


def test_catalog_is_cached():
    assert load_report_catalog() is load_report_catalog()
