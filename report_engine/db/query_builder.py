"""
Query builder -- turns a RecordQuery into SQLAlchemy Core statements.

Identifiers come only from the report catalog (and are quoted by SQLAlchemy);
every filter value travels as a bound parameter. Nothing user-supplied is
ever concatenated into query text.

Operator mapping:
  equals -> =        not_equals -> <>       contains -> ILIKE '%v%'
  gt/gte/lt/lte -> > >= < <=                in / not_in -> IN / NOT IN
  between -> BETWEEN v AND v2
"""
from __future__ import annotations

from sqlalchemy import Date, String, cast, column, distinct, func, literal, literal_column, select, table
from sqlalchemy.sql import Select
from sqlalchemy.sql.elements import ColumnElement

from report_engine.core.errors import SourceQueryError
from report_engine.core.logging import get_logger
from report_engine.reports.dates import resolve_bounds
from report_engine.reports.fields import derived_field
from report_engine.reports.plan import RecordQuery
from report_engine.reports.spec import Dimension, Filter, GRANULARITIES, Metric

logger = get_logger(__name__)

_SIMPLE_AGGREGATES = {
    "sum": func.sum,
    "avg": func.avg,
    "min": func.min,
    "max": func.max,
}


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ── Expressions ──────────────────────────────────────────

def field_expression(name: str, query: RecordQuery) -> ColumnElement:
    """SQL expression for a field on the query's table.

    Raises SourceQueryError for fields the table cannot answer in SQL
    (nested paths, columns it does not have).
    """
    derived = derived_field(name)
    if derived is not None:
        return derived.sql(set(query.source.columns))

    col = query.column_for(name)
    if "." in col:
        raise SourceQueryError(f"Nested field '{name}' cannot be expressed in SQL")
    if not query.source.has_column(col):
        raise SourceQueryError(f"Field '{name}' is not a column of table '{query.table}'")
    return column(col)


def group_expression(dim: Dimension, query: RecordQuery) -> ColumnElement:
    expr = field_expression(dim.field, query)
    if dim.type == "date" and dim.granularity:
        if dim.granularity not in GRANULARITIES:
            raise SourceQueryError(f"Unsupported granularity '{dim.granularity}'")
        expr = cast(func.date_trunc(literal(dim.granularity), expr), Date)
    return expr


def aggregate_expression(metric: Metric, query: RecordQuery) -> ColumnElement:
    if metric.aggregation == "count":
        return func.count()
    expr = field_expression(metric.field, query)
    if metric.aggregation == "count_distinct":
        return func.count(distinct(expr))
    fn = _SIMPLE_AGGREGATES.get(metric.aggregation)
    if fn is None:
        raise SourceQueryError(f"Unsupported aggregation '{metric.aggregation}'")
    return func.coalesce(fn(expr), literal(0))


def build_predicate(flt: Filter, expr: ColumnElement) -> ColumnElement:
    op = flt.operator
    if op == "equals":
        return expr == flt.value
    if op == "not_equals":
        return expr != flt.value
    if op == "contains":
        pattern = f"%{_escape_like(str(flt.value))}%"
        return cast(expr, String).ilike(pattern, escape="\\")
    if op == "gt":
        return expr > flt.value
    if op == "gte":
        return expr >= flt.value
    if op == "lt":
        return expr < flt.value
    if op == "lte":
        return expr <= flt.value
    if op == "in":
        return expr.in_(list(flt.value or []))
    if op == "not_in":
        return expr.not_in(list(flt.value or []))
    if op == "between":
        return expr.between(flt.value, flt.value2)
    raise SourceQueryError(f"Unsupported filter operator '{op}'")


def partition_filters(query: RecordQuery) -> tuple[list[Filter], list[Filter]]:
    """Split filters into ``(sql, residual)``: residual ones cannot be expressed in SQL."""
    sql_filters: list[Filter] = []
    residual: list[Filter] = []
    for flt in query.filters:
        try:
            field_expression(flt.field, query)
        except SourceQueryError:
            residual.append(flt)
        else:
            sql_filters.append(flt)
    return sql_filters, residual


def where_clauses(
    query: RecordQuery,
    tenant_column: str | None = None,
    filters: list[Filter] | None = None,
) -> list[ColumnElement]:
    """Tenant scope, date range and filters (all spec filters by default) as predicates."""
    clauses: list[ColumnElement] = []

    if tenant_column and query.tenant_id is not None and query.source.has_column(tenant_column):
        clauses.append(column(tenant_column) == query.tenant_id)

    if query.date_range is not None:
        start, end, end_inclusive = resolve_bounds(query.date_range)
        ts = column(query.source.timestamp_column)
        clauses.append(ts >= start)
        clauses.append(ts <= end if end_inclusive else ts < end)

    for flt in query.filters if filters is None else filters:
        clauses.append(build_predicate(flt, field_expression(flt.field, query)))

    return clauses


# ── Statements ───────────────────────────────────────────

def build_fetch_query(query: RecordQuery, tenant_column: str | None = None) -> Select:
    """Raw rows for in-process aggregation.

    Only SQL-expressible filters are applied; the caller evaluates the
    residual ones (see ``partition_filters``) on the fetched rows.
    """
    stmt = select(*[column(c) for c in query.source.columns]).select_from(table(query.table))
    sql_filters, _ = partition_filters(query)
    clauses = where_clauses(query, tenant_column, sql_filters)
    if clauses:
        stmt = stmt.where(*clauses)
    return stmt


def build_aggregate_query(query: RecordQuery, tenant_column: str | None = None) -> Select:
    """One grouped aggregate query answering the whole spec."""
    select_parts: list[ColumnElement] = []
    for dim in query.group_by:
        select_parts.append(group_expression(dim, query).label(dim.field))
    for metric in query.metrics:
        select_parts.append(aggregate_expression(metric, query).label(metric.field))

    stmt = select(*select_parts).select_from(table(query.table))
    clauses = where_clauses(query, tenant_column)
    if clauses:
        stmt = stmt.where(*clauses)
    if query.group_by:
        # positional GROUP BY keeps bound parameters out of the grouping keys
        stmt = stmt.group_by(*[literal_column(str(i + 1)) for i in range(len(query.group_by))])

    logger.debug("Push-down query for table=%s groups=%d metrics=%d",
                 query.table, len(query.group_by), len(query.metrics))
    return stmt
