"""
Execution strategies -- the two ways a RecordQuery becomes metric rows.

  PushDownStrategy          the record source groups and aggregates (one query)
  PullAndAggregateStrategy  fetch filtered raw rows, aggregate in process

`run_with_fallback` tries strategies in order. A SourceQueryError moves on
to the next strategy; DeadlineExceeded does not, since the budget is already
spent. The last strategy's error propagates unchanged.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from report_engine.core.errors import DeadlineExceeded, SourceQueryError
from report_engine.core.logging import get_logger
from report_engine.db.record_source import RecordSource
from report_engine.reports.aggregation import aggregate_rows
from report_engine.reports.plan import RecordQuery

logger = get_logger(__name__)


class ExecutionStrategy(ABC):
    name: str = ""

    def supports(self, source: RecordSource) -> bool:
        return True

    @abstractmethod
    def run(self, query: RecordQuery, source: RecordSource) -> list[dict[str, Any]]:
        """Return one row per group (dimension values + numeric metrics)."""


class PushDownStrategy(ExecutionStrategy):
    name = "push_down"

    def supports(self, source: RecordSource) -> bool:
        return bool(getattr(source, "supports_pushdown", False))

    def run(self, query: RecordQuery, source: RecordSource) -> list[dict[str, Any]]:
        if not self.supports(source):
            raise SourceQueryError(f"{type(source).__name__} has no push-down capability")
        query.deadline.check("push-down")
        return source.aggregate(query)


class PullAndAggregateStrategy(ExecutionStrategy):
    name = "pull_and_aggregate"

    def run(self, query: RecordQuery, source: RecordSource) -> list[dict[str, Any]]:
        query.deadline.check("fetch")
        rows = source.fetch(query)
        query.deadline.check("aggregation")
        return aggregate_rows(rows, query)


def default_strategies(pushdown: bool = True) -> list[ExecutionStrategy]:
    strategies: list[ExecutionStrategy] = [PullAndAggregateStrategy()]
    if pushdown:
        strategies.insert(0, PushDownStrategy())
    return strategies


def run_with_fallback(
    strategies: list[ExecutionStrategy],
    query: RecordQuery,
    source: RecordSource,
) -> tuple[list[dict[str, Any]], str]:
    """Run the first strategy that succeeds; return its rows and name.

    Strategies the source cannot support are skipped without a warning,
    unless none is left, in which case the last one runs and reports why.
    """
    if not strategies:
        raise ValueError("No execution strategies configured")

    candidates = [s for s in strategies if s.supports(source)]
    for strategy in strategies:
        if strategy not in candidates:
            logger.debug("Skipping %s: not supported by %s", strategy.name, type(source).__name__)
    if not candidates:
        candidates = strategies[-1:]

    for index, strategy in enumerate(candidates):
        try:
            rows = strategy.run(query, source)
        except DeadlineExceeded:
            raise
        except SourceQueryError as exc:
            if index == len(candidates) - 1:
                raise
            logger.warning(
                "Strategy %s failed on table=%s (%s) -- falling back to %s",
                strategy.name, query.table, exc, candidates[index + 1].name,
            )
            continue
        return rows, strategy.name

    raise AssertionError("unreachable")
