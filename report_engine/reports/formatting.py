"""
Display formatting for metric values.

Formatting produces a companion ``<field>_formatted`` string; the numeric
value itself is never modified.
"""
from __future__ import annotations

from typing import Any

from report_engine.reports.spec import Metric

FORMATTED_SUFFIX = "_formatted"


def format_currency(value: float, symbol: str = "$") -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def format_percentage(value: float) -> str:
    return f"{value:.2f}%"


def format_number(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def format_value(value: Any, fmt: str | None, currency_symbol: str = "$") -> str | None:
    if fmt is None or value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float)):
        return None
    if fmt == "currency":
        return format_currency(value, currency_symbol)
    if fmt == "percentage":
        return format_percentage(value)
    if fmt == "number":
        return format_number(value)
    return None


def format_rows(
    rows: list[dict[str, Any]],
    metrics: list[Metric],
    currency_symbol: str = "$",
) -> list[dict[str, Any]]:
    """Return copies of *rows* with a formatted companion for every formatted metric."""
    formatted_metrics = [m for m in metrics if m.format]
    if not formatted_metrics:
        return rows
    out: list[dict[str, Any]] = []
    for row in rows:
        new_row = dict(row)
        for metric in formatted_metrics:
            text = format_value(row.get(metric.field), metric.format, currency_symbol)
            if text is not None:
                new_row[f"{metric.field}{FORMATTED_SUFFIX}"] = text
        out.append(new_row)
    return out
