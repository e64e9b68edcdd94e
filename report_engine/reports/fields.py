"""
Derived-field registry.

Some metric fields are not literal columns but are computed per row before
aggregation. Each ``DerivedField`` maps to a row extractor (used by the
in-process aggregator and in-memory filtering) and a SQL expression builder
(used by the push-down query builder), so both execution paths share one
definition.
"""
from __future__ import annotations

import decimal
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import case, column, func, literal
from sqlalchemy.sql.elements import ColumnElement

from report_engine.core.errors import AggregationError

ASSUMED_COST_RATIO = 0.6
_REVENUE_COLUMNS = ("total", "amount")


class DerivedField(str, Enum):
    REVENUE = "revenue"
    ORDERS = "orders"
    AVG_ORDER_VALUE = "avg_order_value"
    PROFIT = "profit"
    PROFIT_MARGIN = "profit_margin"


# ── Value helpers ────────────────────────────────────────

def to_number(value: Any) -> int | float | None:
    """Coerce a raw row value to a number, or None when it is not numeric.

    Raises AggregationError for container values, which have no numeric reading.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else value
    if isinstance(value, decimal.Decimal):
        return None if value.is_nan() else float(value)
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return None if math.isnan(parsed) else parsed
    if isinstance(value, (dict, list, tuple, set)):
        raise AggregationError(f"Expected a scalar value, got {type(value).__name__}")
    return None


def resolve_path(row: Mapping[str, Any], path: str) -> Any:
    """Look up ``a.b.c`` by successive key access; None if any segment is missing."""
    if "." not in path:
        return row.get(path) if isinstance(row, Mapping) else None
    value: Any = row
    for part in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
        if value is None:
            return None
    return value


# ── Row extractors ───────────────────────────────────────

def _revenue(row: Mapping[str, Any]) -> int | float:
    for key in _REVENUE_COLUMNS:
        value = row.get(key)
        if value is not None:
            return to_number(value) or 0
    return 0


def _cost(row: Mapping[str, Any]) -> int | float:
    explicit = to_number(row.get("cost"))
    if explicit is not None:
        return explicit
    return _revenue(row) * ASSUMED_COST_RATIO


def _profit(row: Mapping[str, Any]) -> int | float:
    return _revenue(row) - _cost(row)


def _profit_margin(row: Mapping[str, Any]) -> float:
    revenue = _revenue(row)
    if revenue == 0:
        return 0.0
    return _profit(row) / revenue * 100


# ── SQL expression builders ──────────────────────────────

def _revenue_sql(columns: set[str]) -> ColumnElement:
    present = [column(c) for c in _REVENUE_COLUMNS if c in columns]
    if not present:
        return literal(0)
    return func.coalesce(*present, literal(0))


def _cost_sql(columns: set[str]) -> ColumnElement:
    assumed = _revenue_sql(columns) * ASSUMED_COST_RATIO
    if "cost" in columns:
        return func.coalesce(column("cost"), assumed)
    return assumed


def _profit_sql(columns: set[str]) -> ColumnElement:
    return _revenue_sql(columns) - _cost_sql(columns)


def _profit_margin_sql(columns: set[str]) -> ColumnElement:
    revenue = _revenue_sql(columns)
    return case(
        (revenue == 0, literal(0)),
        else_=_profit_sql(columns) / revenue * 100,
    )


@dataclass(frozen=True)
class DerivedFieldDef:
    extract: Callable[[Mapping[str, Any]], Any]
    sql: Callable[[set[str]], ColumnElement]


DERIVED_FIELDS: dict[DerivedField, DerivedFieldDef] = {
    DerivedField.REVENUE: DerivedFieldDef(_revenue, _revenue_sql),
    DerivedField.ORDERS: DerivedFieldDef(lambda row: 1, lambda columns: literal(1)),
    # averaging happens at aggregation time
    DerivedField.AVG_ORDER_VALUE: DerivedFieldDef(_revenue, _revenue_sql),
    DerivedField.PROFIT: DerivedFieldDef(_profit, _profit_sql),
    DerivedField.PROFIT_MARGIN: DerivedFieldDef(_profit_margin, _profit_margin_sql),
}

_BY_NAME: dict[str, DerivedFieldDef] = {f.value: d for f, d in DERIVED_FIELDS.items()}


def is_derived(name: str) -> bool:
    return name in _BY_NAME


def derived_field(name: str) -> DerivedFieldDef | None:
    return _BY_NAME.get(name)


def extract_value(row: Mapping[str, Any], field: str, column_name: str | None = None) -> Any:
    """Value of *field* for one row: derived formula first, then column/path lookup."""
    derived = _BY_NAME.get(field)
    if derived is not None:
        return derived.extract(row)
    return resolve_path(row, column_name or field)
