"""
Unit tests -- ReportSpec model, result metadata and execution deadline.
"""
import pytest
from pydantic import ValidationError

from report_engine.core.errors import DeadlineExceeded, InvalidSpecError
from report_engine.core.utils import Deadline, timer
from report_engine.reports.spec import ReportResult, ReportSpec


def test_minimal_spec_defaults():
    spec = ReportSpec.model_validate({
        "dimensions": [{"field": "category"}],
        "metrics": [{"field": "revenue"}],
    })
    assert spec.metrics[0].aggregation == "sum"
    assert spec.dimensions[0].type == "string"
    assert spec.filters == []
    assert spec.limit is None
    assert spec.date_range is None


def test_camel_case_and_snake_case_date_range():
    a = ReportSpec.model_validate({"dateRange": {"start": "2024-01-01", "end": "2024-01-31"}})
    b = ReportSpec.model_validate({"date_range": {"start": "2024-01-01", "end": "2024-01-31"}})
    assert a.date_range == b.date_range


def test_invalid_operator_rejected():
    with pytest.raises(ValidationError):
        ReportSpec.model_validate({"filters": [{"field": "x", "operator": "like", "value": 1}]})


def test_invalid_aggregation_rejected():
    with pytest.raises(ValidationError):
        ReportSpec.model_validate({"metrics": [{"field": "revenue", "aggregation": "median"}]})


def test_group_fields_prefers_grouping():
    spec = ReportSpec.model_validate({
        "dimensions": [{"field": "category"}],
        "grouping": [{"field": "channel"}],
    })
    assert spec.group_fields() == ["channel"]


def test_touched_fields_deduplicated():
    spec = ReportSpec.model_validate({
        "dimensions": [{"field": "category"}],
        "metrics": [{"field": "revenue"}],
        "filters": [{"field": "category", "operator": "equals", "value": "A"}],
        "sorting": [{"field": "revenue"}],
    })
    assert spec.touched_fields() == ["category", "revenue"]


def test_result_metadata_aliases():
    dumped = ReportResult().model_dump(by_alias=True)
    assert set(dumped["metadata"]) >= {"rowCount", "executionTimeMs", "cached", "generatedAt"}


def test_invalid_spec_error_joins_messages():
    err = InvalidSpecError(["first", "second"])
    assert err.errors == ["first", "second"]
    assert str(err) == "first; second"


# ── Deadline / timer ─────────────────────────────────────

def test_no_deadline_never_expires():
    d = Deadline()
    assert not d.expired
    assert d.remaining_ms() is None
    d.check()


def test_spent_deadline_raises():
    d = Deadline(0)
    assert d.expired
    with pytest.raises(DeadlineExceeded, match="during fetch"):
        d.check("fetch")


def test_timer_records_elapsed():
    with timer() as t:
        pass
    assert t["elapsed_ms"] >= 0
