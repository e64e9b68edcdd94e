"""
Unit tests -- report template catalog.
"""
import pytest
from report_engine.catalog.loader import load_report_catalog
from report_engine.catalog.validator import validate_spec
from report_engine.core.errors import TemplateNotFoundError
from report_engine.reports.templates import TemplateCatalog, load_template_catalog, parse_templates


@pytest.fixture(scope="module")
def templates() -> TemplateCatalog:
    return load_template_catalog()


def test_sales_by_category(templates):
    t = templates.get_by_id("sales-by-category")
    assert t.category == "sales"
    revenue = next(m for m in t.metrics if m.field == "revenue")
    assert revenue.aggregation == "sum"
    assert t.chart_type == "bar"
    assert t.is_featured is True


def test_unknown_template(templates):
    with pytest.raises(TemplateNotFoundError) as exc_info:
        templates.get_by_id("does-not-exist")
    assert exc_info.value.template_id == "does-not-exist"


def test_featured(templates):
    featured = templates.get_featured()
    assert len(featured) == 5
    assert all(t.is_featured for t in featured)


def test_by_category(templates):
    sales = templates.get_by_category("sales")
    assert {t.id for t in sales} >= {"sales-by-category", "revenue-by-channel"}
    assert templates.get_by_category("nope") == []


def test_categories(templates):
    assert set(templates.categories()) == {"sales", "customer", "financial", "operational", "product"}


def test_search_matches_name_description_and_tags(templates):
    assert "sales-by-category" in [t.id for t in templates.search("CATEGORY")]
    assert "customer-acquisition-cost" in [t.id for t in templates.search("cac")]
    assert templates.search("   ") == []
    assert templates.search("zzz-no-match") == []


def test_every_template_is_a_valid_spec(templates):
    catalog = load_report_catalog()
    for t in templates.all():
        assert validate_spec(t.to_spec(), catalog) == [], t.id


def test_to_spec_overrides(templates):
    spec = templates.get_by_id("sales-trend").to_spec(
        date_range={"start": "2024-01-01", "end": "2024-03-31"}, limit=5,
    )
    assert spec.date_range.start == "2024-01-01"
    assert spec.limit == 5


def test_duplicate_ids_rejected():
    raw = {"templates": [
        {"id": "x", "name": "X", "category": "sales"},
        {"id": "x", "name": "X again", "category": "sales"},
    ]}
    with pytest.raises(ValueError, match="Duplicate template ids"):
        parse_templates(raw)


def test_camel_case_keys_parsed():
    raw = {"templates": [
        {"id": "x", "name": "X", "category": "sales", "chartType": "pie", "isFeatured": True},
    ]}
    t = parse_templates(raw).get_by_id("x")
    assert t.chart_type == "pie"
    assert t.is_featured
