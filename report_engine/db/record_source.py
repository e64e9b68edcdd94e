"""
Record sources -- the backing stores a report reads from.

A record source answers ``fetch(query)`` with raw filtered rows and, when it
has push-down capability, ``aggregate(query)`` with grouped metric rows.
Failures are reported as SourceQueryError (DeadlineExceeded on timeout),
never as driver exceptions.

  SqlRecordSource       Postgres via SQLAlchemy; supports push-down
  InMemoryRecordSource  tables of dicts; fetch only
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import Select

from report_engine.core.errors import DeadlineExceeded, SourceQueryError
from report_engine.core.logging import get_logger
from report_engine.db.executor import DEFAULT_QUERY_TIMEOUT_MS, execute_readonly, is_statement_timeout
from report_engine.db.query_builder import build_aggregate_query, build_fetch_query, partition_filters
from report_engine.reports.dates import resolve_bounds, within_bounds
from report_engine.reports.fields import extract_value
from report_engine.reports.filters import matches
from report_engine.reports.plan import RecordQuery
from report_engine.reports.spec import Filter

logger = get_logger(__name__)


class RecordSource(Protocol):
    supports_pushdown: bool

    def fetch(self, query: RecordQuery) -> list[dict[str, Any]]:
        ...

    def aggregate(self, query: RecordQuery) -> list[dict[str, Any]]:
        ...


class SqlRecordSource:
    """Reads report data from Postgres in read-only transactions."""

    supports_pushdown = True

    def __init__(
        self,
        engine: Engine | None = None,
        tenant_column: str | None = None,
        timeout_ms: int = DEFAULT_QUERY_TIMEOUT_MS,
    ):
        self._engine = engine
        self._tenant_column = tenant_column
        self._timeout_ms = timeout_ms

    def fetch(self, query: RecordQuery) -> list[dict[str, Any]]:
        rows = self._run(build_fetch_query(query, self._tenant_column), query)
        _, residual = partition_filters(query)
        if residual:
            rows = [r for r in rows if _passes(r, residual, query)]
            logger.debug("Applied %d residual filter(s) in process on table=%s", len(residual), query.table)
        return rows

    def aggregate(self, query: RecordQuery) -> list[dict[str, Any]]:
        return self._run(build_aggregate_query(query, self._tenant_column), query)

    def _run(self, stmt: Select, query: RecordQuery) -> list[dict[str, Any]]:
        query.deadline.check(f"query on {query.table}")
        remaining = query.deadline.remaining_ms()
        timeout_ms = self._timeout_ms if remaining is None else min(self._timeout_ms, max(1, remaining))
        try:
            return execute_readonly(stmt, timeout_ms=timeout_ms, engine=self._engine)
        except SQLAlchemyError as exc:
            if is_statement_timeout(exc):
                raise DeadlineExceeded(
                    f"Query on '{query.table}' exceeded {timeout_ms} ms"
                ) from exc
            raise SourceQueryError(f"Query on '{query.table}' failed: {exc}") from exc


class InMemoryRecordSource:
    """Tables of plain dict rows, filtered in process.

    Rows carrying the tenant column are scoped to the requesting tenant;
    rows without it are visible to every tenant.
    """

    supports_pushdown = False

    def __init__(
        self,
        tables: Mapping[str, Iterable[Mapping[str, Any]]] | None = None,
        tenant_column: str | None = None,
    ):
        self._tables: dict[str, list[dict[str, Any]]] = {
            name: [dict(r) for r in rows] for name, rows in (tables or {}).items()
        }
        self._tenant_column = tenant_column

    def add_rows(self, table: str, rows: Iterable[Mapping[str, Any]]) -> None:
        self._tables.setdefault(table, []).extend(dict(r) for r in rows)

    def fetch(self, query: RecordQuery) -> list[dict[str, Any]]:
        query.deadline.check(f"fetch from {query.table}")
        rows = self._tables.get(query.table)
        if rows is None:
            raise SourceQueryError(f"Unknown table '{query.table}'")

        bounds = resolve_bounds(query.date_range) if query.date_range is not None else None
        result = [dict(r) for r in rows if self._keep(r, query, bounds)]
        logger.debug("In-memory fetch table=%s kept=%d of %d", query.table, len(result), len(rows))
        return result

    def aggregate(self, query: RecordQuery) -> list[dict[str, Any]]:
        raise SourceQueryError("In-memory record source has no push-down capability")

    def _keep(self, row: Mapping[str, Any], query: RecordQuery, bounds) -> bool:
        tc = self._tenant_column
        if tc and query.tenant_id is not None and tc in row and row[tc] != query.tenant_id:
            return False
        if bounds is not None and not within_bounds(row.get(query.source.timestamp_column), bounds):
            return False
        return _passes(row, query.filters, query)


def _passes(row: Mapping[str, Any], filters: list[Filter], query: RecordQuery) -> bool:
    """True if *row* satisfies every filter (evaluated in process)."""
    for flt in filters:
        value = extract_value(row, flt.field, query.column_for(flt.field))
        if not matches(value, flt):
            return False
    return True
