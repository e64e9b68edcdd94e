"""
Report engine -- orchestrates validate -> cache -> resolve -> execute ->
format -> sort -> paginate -> cache.

Full end-to-end pipeline. A spec is validated against the report catalog
before any data access. Execution runs through the configured strategies
(push-down first when enabled, pull-and-aggregate as the fallback), so a
store that cannot group in place still answers every report.

Collaborators are injected:
  - RecordSource    where rows come from (Postgres, in-memory tables)
  - ReportCache     per-process result cache
  - ReportCatalog   selectable dimensions / metrics / sources
  - TemplateCatalog curated report presets
  - encoders        format -> ByteEncoder for binary exports
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from report_engine.catalog.loader import ReportCatalog, load_report_catalog
from report_engine.catalog.resolver import resolve_source
from report_engine.catalog.validator import ensure_valid
from report_engine.core.config import Settings, get_settings
from report_engine.core.logging import get_logger
from report_engine.core.utils import Deadline, timer
from report_engine.db.record_source import RecordSource
from report_engine.reports.cache import ReportCache
from report_engine.reports.encoders import XlsxEncoder
from report_engine.reports.export import ByteEncoder, ExportOptions, ensure_exportable, export_result
from report_engine.reports.formatting import format_rows
from report_engine.reports.ordering import paginate, sort_rows
from report_engine.reports.plan import build_record_query
from report_engine.reports.spec import Dimension, Metric, ReportResult, ReportSpec, ResultMetadata
from report_engine.reports.strategies import ExecutionStrategy, default_strategies, run_with_fallback
from report_engine.reports.templates import Template, TemplateCatalog, load_template_catalog

logger = get_logger(__name__)


class ReportEngine:
    def __init__(
        self,
        source: RecordSource,
        cache: ReportCache | None = None,
        catalog: ReportCatalog | None = None,
        templates: TemplateCatalog | None = None,
        strategies: list[ExecutionStrategy] | None = None,
        encoders: Mapping[str, ByteEncoder] | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.source = source
        self.cache = cache if cache is not None else ReportCache(
            ttl=self.settings.report_cache_ttl_seconds,
            max_size=self.settings.report_cache_max_size,
        )
        self.catalog = catalog or load_report_catalog()
        self.templates = templates if templates is not None else load_template_catalog()
        self.strategies = strategies or default_strategies(self.settings.report_enable_pushdown)
        self.encoders: dict[str, ByteEncoder] = {"excel": XlsxEncoder()}
        if encoders:
            self.encoders.update(encoders)

    # ── Execution ────────────────────────────────────────

    def execute(
        self,
        spec: ReportSpec,
        tenant_id: str,
        use_cache: bool = True,
        timeout_ms: int | None = None,
    ) -> ReportResult:
        """Run *spec* for *tenant_id* and return rows plus metadata.

        Raises InvalidSpecError before touching the store, SourceQueryError
        (DeadlineExceeded on timeout) when every strategy fails, and
        AggregationError for rows the engine cannot aggregate.
        """
        ensure_valid(spec, self.catalog, max_limit=self.settings.report_max_limit)

        if use_cache:
            cached = self._cache_get(tenant_id, spec)
            if cached is not None:
                logger.info("Report served from cache (tenant=%s, rows=%d)",
                            tenant_id, cached.metadata.row_count)
                return cached

        deadline = Deadline(timeout_ms if timeout_ms is not None else self.settings.report_query_timeout_ms)

        with timer() as t:
            source = resolve_source(spec, self.catalog)
            query = build_record_query(spec, source, self.catalog, tenant_id=tenant_id, deadline=deadline)
            rows, strategy = run_with_fallback(self.strategies, query, self.source)
            rows = format_rows(rows, spec.metrics, self.settings.report_currency_symbol)
            rows = sort_rows(rows, spec.sorting)
            rows = paginate(rows, spec.limit, spec.offset)

        result = ReportResult(
            rows=rows,
            metadata=ResultMetadata(
                row_count=len(rows),
                execution_time_ms=t["elapsed_ms"],
                cached=False,
                strategy=strategy,
                source=source.name,
            ),
        )
        logger.info(
            "Report executed (tenant=%s, source=%s, strategy=%s, rows=%d, %d ms)",
            tenant_id, source.name, strategy, len(rows), t["elapsed_ms"],
        )

        if use_cache:
            self._cache_put(tenant_id, spec, result)
        return result

    def export_result(self, result: ReportResult, fmt: str, options: ExportOptions | None = None) -> bytes:
        return export_result(result, fmt, options, self.encoders)

    def ensure_exportable(self, fmt: str) -> None:
        ensure_exportable(fmt, self.encoders)

    # ── Catalog & templates ──────────────────────────────

    def list_dimensions(self) -> list[Dimension]:
        return self.catalog.list_dimensions()

    def list_metrics(self) -> list[Metric]:
        return self.catalog.list_metrics()

    def get_template(self, template_id: str) -> Template:
        return self.templates.get_by_id(template_id)

    def list_templates(self) -> list[Template]:
        return self.templates.all()

    def search_templates(self, query: str) -> list[Template]:
        return self.templates.search(query)

    def list_templates_by_category(self, category: str) -> list[Template]:
        return self.templates.get_by_category(category)

    def featured_templates(self) -> list[Template]:
        return self.templates.get_featured()

    def execute_template(
        self,
        template_id: str,
        tenant_id: str,
        use_cache: bool = True,
        timeout_ms: int | None = None,
        **overrides: Any,
    ) -> ReportResult:
        """Execute a template's spec; overrides (``date_range``, ``limit`` ...) replace its fields."""
        spec = self.get_template(template_id).to_spec(**overrides)
        return self.execute(spec, tenant_id, use_cache=use_cache, timeout_ms=timeout_ms)

    # ── Cache ────────────────────────────────────────────

    def clear_cache(self, tenant_id: str | None = None) -> int:
        removed = self.cache.invalidate(tenant_id)
        logger.info("Cleared %d cached report(s) (tenant=%s)", removed, tenant_id or "*")
        return removed

    def cache_stats(self) -> dict[str, Any]:
        return self.cache.stats()

    def _cache_get(self, tenant_id: str, spec: ReportSpec) -> ReportResult | None:
        try:
            result = self.cache.get(tenant_id, spec)
        except Exception:
            logger.warning("Report cache read failed; treating as miss", exc_info=True)
            return None
        if result is not None:
            result.metadata.cached = True
        return result

    def _cache_put(self, tenant_id: str, spec: ReportSpec, result: ReportResult) -> None:
        try:
            self.cache.put(tenant_id, spec, result)
        except Exception:
            logger.warning("Report cache write failed; result not cached", exc_info=True)
