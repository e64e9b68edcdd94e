"""
Loads, parses, and caches the report catalog YAML into strongly-typed objects.

The catalog is the single source of truth for:
  - selectable dimensions (label, type, default granularity, column)
  - selectable metrics    (label, default aggregation and format, column)
  - logical record sources, in resolver priority order
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from functools import lru_cache
from typing import Any

import yaml

from report_engine.reports.fields import is_derived
from report_engine.reports.spec import Dimension, Metric

_CATALOG_PATH = Path(__file__).resolve().parents[2] / "semantic_layer" / "report_catalog.yml"


# ── Typed domain objects ─────────────────────────────────

@dataclass(frozen=True)
class DimensionDef:
    field: str
    label: str
    type: str = "string"
    granularity: str | None = None
    column: str | None = None

    def to_dimension(self) -> Dimension:
        return Dimension(
            field=self.field, label=self.label, type=self.type, granularity=self.granularity,
        )


@dataclass(frozen=True)
class MetricDef:
    field: str
    label: str
    aggregation: str = "sum"
    format: str | None = None
    column: str | None = None

    def to_metric(self) -> Metric:
        return Metric(
            field=self.field, label=self.label, aggregation=self.aggregation, format=self.format,
        )


@dataclass(frozen=True)
class SourceDef:
    """A logical record collection the engine can read from."""

    name: str
    table: str
    timestamp_column: str
    fields: tuple[str, ...] = ()
    columns: tuple[str, ...] = ()

    def owns(self, field_name: str) -> bool:
        return field_name in self.fields

    def has_column(self, column: str) -> bool:
        return column in self.columns


@dataclass
class ReportCatalog:
    """Fully parsed report catalog."""

    version: int
    dimensions: dict[str, DimensionDef]    # keyed by field
    metrics: dict[str, MetricDef]          # keyed by field
    sources: list[SourceDef] = field(default_factory=list)  # priority order

    # ── Convenience look-ups ─────────────────────────

    def dimension(self, name: str) -> DimensionDef | None:
        return self.dimensions.get(name)

    def metric(self, name: str) -> MetricDef | None:
        return self.metrics.get(name)

    def source(self, name: str) -> SourceDef | None:
        for s in self.sources:
            if s.name == name:
                return s
        return None

    def list_dimensions(self) -> list[Dimension]:
        return [d.to_dimension() for d in self.dimensions.values()]

    def list_metrics(self) -> list[Metric]:
        return [m.to_metric() for m in self.metrics.values()]

    def all_columns(self) -> set[str]:
        cols: set[str] = set()
        for s in self.sources:
            cols.update(s.columns)
        return cols

    def is_known_field(self, name: str) -> bool:
        """True if *name* is a catalog field, a derived field, a source column,
        or a dotted path rooted at a source column."""
        if name in self.dimensions or name in self.metrics or is_derived(name):
            return True
        root = name.split(".", 1)[0]
        return root in self.all_columns()

    def column_for(self, name: str, source: SourceDef) -> str:
        """Physical column (or dotted path) holding *name* on *source*."""
        dim = self.dimensions.get(name)
        if dim is not None:
            if dim.column:
                return dim.column
            if dim.type == "date":
                return source.timestamp_column
        met = self.metrics.get(name)
        if met is not None and met.column:
            return met.column
        return name


# ── Parsing ──────────────────────────────────────────────

def _parse_dimension(raw: dict[str, Any]) -> DimensionDef:
    return DimensionDef(
        field=raw["field"],
        label=raw.get("label", raw["field"]),
        type=raw.get("type", "string"),
        granularity=raw.get("granularity"),
        column=raw.get("column"),
    )


def _parse_metric(raw: dict[str, Any]) -> MetricDef:
    return MetricDef(
        field=raw["field"],
        label=raw.get("label", raw["field"]),
        aggregation=raw.get("aggregation", "sum"),
        format=raw.get("format"),
        column=raw.get("column"),
    )


def _parse_source(raw: dict[str, Any]) -> SourceDef:
    return SourceDef(
        name=raw["name"],
        table=raw.get("table", raw["name"]),
        timestamp_column=raw.get("timestamp_column", "created_at"),
        fields=tuple(raw.get("fields") or []),
        columns=tuple(raw.get("columns") or []),
    )


def _parse_catalog(raw_yaml: dict[str, Any]) -> ReportCatalog:
    dimensions = {d["field"]: _parse_dimension(d) for d in raw_yaml.get("dimensions", [])}
    metrics = {m["field"]: _parse_metric(m) for m in raw_yaml.get("metrics", [])}
    sources = [_parse_source(s) for s in raw_yaml.get("sources", [])]
    return ReportCatalog(
        version=raw_yaml.get("version", 1),
        dimensions=dimensions,
        metrics=metrics,
        sources=sources,
    )


# ── Public API ───────────────────────────────────────────

@lru_cache
def load_report_catalog(path: Path | None = None) -> ReportCatalog:
    """Load and cache the report catalog from YAML."""
    with open(path or _CATALOG_PATH) as f:
        raw = yaml.safe_load(f)
    return _parse_catalog(raw)


def list_dimensions() -> list[Dimension]:
    return load_report_catalog().list_dimensions()


def list_metrics() -> list[Metric]:
    return load_report_catalog().list_metrics()
