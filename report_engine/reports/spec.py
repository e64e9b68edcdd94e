"""
ReportSpec -- the declarative description of a report, and the result shape.

Field names are snake_case in Python; JSON payloads may use the camelCase
aliases (``dateRange``, ``rowCount`` ...) that report builders send.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

DimensionType = Literal["string", "date", "number", "boolean"]
Granularity = Literal["day", "week", "month", "quarter", "year"]
Aggregation = Literal["sum", "avg", "count", "count_distinct", "min", "max"]
MetricFormat = Literal["currency", "percentage", "number"]
FilterOperator = Literal[
    "equals", "not_equals", "contains",
    "gt", "gte", "lt", "lte",
    "in", "not_in", "between",
]
SortDirection = Literal["asc", "desc"]

GRANULARITIES: tuple[str, ...] = ("day", "week", "month", "quarter", "year")


class Dimension(BaseModel):
    """A grouping key."""

    field: str
    label: str = ""
    type: DimensionType = "string"
    granularity: Granularity | None = None


class Metric(BaseModel):
    """A field paired with an aggregation function."""

    field: str
    label: str = ""
    aggregation: Aggregation = "sum"
    format: MetricFormat | None = None


class Filter(BaseModel):
    field: str
    operator: FilterOperator
    value: Any = None
    value2: Any = None


class Sort(BaseModel):
    field: str
    direction: SortDirection = "asc"


class Grouping(BaseModel):
    field: str


class DateRange(BaseModel):
    """Inclusive range on the source's timestamp column.

    ``start``/``end`` are ISO-8601 strings. A date-only ``end`` covers that
    whole day.
    """

    start: str
    end: str


class ReportSpec(BaseModel):
    """Parsed representation of a report request."""

    model_config = ConfigDict(populate_by_name=True)

    dimensions: list[Dimension] = Field(default_factory=list)
    metrics: list[Metric] = Field(default_factory=list)
    filters: list[Filter] = Field(default_factory=list)
    sorting: list[Sort] = Field(default_factory=list)
    grouping: list[Grouping] | None = None
    date_range: DateRange | None = Field(None, alias="dateRange")
    limit: int | None = None
    offset: int | None = None

    def group_fields(self) -> list[str]:
        """Fields rows are partitioned by: ``grouping`` if given, else the dimensions."""
        if self.grouping:
            return [g.field for g in self.grouping]
        return [d.field for d in self.dimensions]

    def touched_fields(self) -> list[str]:
        """Every field referenced anywhere in the spec, in first-seen order."""
        seen: dict[str, None] = {}
        for name in (
            [d.field for d in self.dimensions]
            + [m.field for m in self.metrics]
            + [f.field for f in self.filters]
            + [s.field for s in self.sorting]
            + [g.field for g in self.grouping or []]
        ):
            seen.setdefault(name, None)
        return list(seen)

    def dimension_for(self, field: str) -> Dimension | None:
        for d in self.dimensions:
            if d.field == field:
                return d
        return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResultMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    row_count: int = Field(0, alias="rowCount")
    execution_time_ms: int = Field(0, alias="executionTimeMs")
    cached: bool = False
    generated_at: datetime = Field(default_factory=_utcnow, alias="generatedAt")
    strategy: str | None = None
    source: str | None = None


class ReportResult(BaseModel):
    rows: list[dict[str, Any]] = Field(default_factory=list)
    metadata: ResultMetadata = Field(default_factory=ResultMetadata)
