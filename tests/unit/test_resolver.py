"""
Unit tests -- source resolution by field ownership and priority.
"""
from report_engine.catalog.resolver import resolve_source
from report_engine.reports.spec import ReportSpec


def _spec(dims, mets, filters=None) -> ReportSpec:
    return ReportSpec.model_validate({
        "dimensions": [{"field": d} for d in dims],
        "metrics": [{"field": m} for m in mets],
        "filters": filters or [],
    })


def test_revenue_resolves_to_orders():
    assert resolve_source(_spec(["category"], ["revenue"])).name == "orders"


def test_product_fields_resolve_to_products():
    assert resolve_source(_spec(["category"], ["stock"])).name == "products"


def test_customer_fields_resolve_to_customers():
    assert resolve_source(_spec(["segment"], ["unique_customers"])).name == "customers"


def test_daily_fields_resolve_to_daily_metrics():
    assert resolve_source(_spec(["date"], ["returned_orders"])).name == "daily_metrics"


def test_mixed_domains_pick_highest_priority():
    # orders owns `status`; products owns `stock`
    spec = _spec(["product_name"], ["stock"], [{"field": "status", "operator": "equals", "value": "x"}])
    assert resolve_source(spec).name == "orders"


def test_unowned_fields_default_to_orders():
    assert resolve_source(_spec(["region"], ["shipping"])).name == "orders"


def test_dotted_path_uses_root_field():
    assert resolve_source(_spec(["segment.tier"], ["total_spent"])).name == "customers"
