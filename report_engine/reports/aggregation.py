"""
In-process aggregation engine.

Partitions raw rows by their grouping-dimension tuple and computes every
metric per partition. Per metric, values are extracted per row (derived
fields included), coerced to numbers, and non-numeric values discarded:

  sum / avg / min / max   0 for an empty value set
  count                   rows in the partition, regardless of values
  count_distinct          distinct raw (pre-coercion) values, missing excluded

With no grouping, all rows aggregate into a single output row.
"""
from __future__ import annotations

from typing import Any

from report_engine.core.errors import AggregationError
from report_engine.reports.dates import truncate
from report_engine.reports.fields import extract_value, to_number
from report_engine.reports.plan import RecordQuery
from report_engine.reports.spec import Dimension, Metric


def aggregate_values(aggregation: str, raw_values: list[Any], row_count: int) -> int | float:
    """Apply one aggregation to the raw values extracted from a partition."""
    if aggregation == "count":
        return row_count

    if aggregation == "count_distinct":
        distinct: set[Any] = set()
        for value in raw_values:
            if value is None:
                continue
            try:
                distinct.add(value)
            except TypeError as exc:
                raise AggregationError(
                    f"Cannot count distinct values of type {type(value).__name__}"
                ) from exc
        return len(distinct)

    numbers = [n for n in (to_number(v) for v in raw_values) if n is not None]
    if aggregation == "sum":
        return sum(numbers) if numbers else 0
    if aggregation == "avg":
        return sum(numbers) / len(numbers) if numbers else 0
    if aggregation == "min":
        return min(numbers) if numbers else 0
    if aggregation == "max":
        return max(numbers) if numbers else 0
    raise AggregationError(f"Unknown aggregation '{aggregation}'")


def aggregate_partition(rows: list[dict[str, Any]], metrics: list[Metric], query: RecordQuery) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for metric in metrics:
        column = query.column_for(metric.field)
        raw = [extract_value(row, metric.field, column) for row in rows]
        result[metric.field] = aggregate_values(metric.aggregation, raw, len(rows))
    return result


def _group_value(row: dict[str, Any], dim: Dimension, query: RecordQuery) -> Any:
    value = extract_value(row, dim.field, query.column_for(dim.field))
    if dim.type == "date":
        return truncate(value, dim.granularity)
    return value


def group_rows(
    rows: list[dict[str, Any]],
    group_by: list[Dimension],
    query: RecordQuery,
) -> dict[tuple, list[dict[str, Any]]]:
    """Partition rows by dimension-value tuple, preserving first-seen order."""
    groups: dict[tuple, list[dict[str, Any]]] = {}
    for row in rows:
        key = tuple(_group_value(row, dim, query) for dim in group_by)
        try:
            groups.setdefault(key, []).append(row)
        except TypeError as exc:
            raise AggregationError(f"Unhashable dimension value in group key {key!r}") from exc
    return groups


def aggregate_rows(rows: list[dict[str, Any]], query: RecordQuery) -> list[dict[str, Any]]:
    """Grouped metric rows for *rows*: one per dimension tuple, or one in total."""
    if not query.group_by:
        return [aggregate_partition(rows, query.metrics, query)]

    fields = [dim.field for dim in query.group_by]
    out: list[dict[str, Any]] = []
    for key, partition in group_rows(rows, query.group_by, query).items():
        row = dict(zip(fields, key))
        row.update(aggregate_partition(partition, query.metrics, query))
        out.append(row)
    return out
