"""
Source resolver -- picks the logical record collection that answers a spec.

Sources are tried in catalog priority order (orders > products > customers >
daily_metrics); the first one that owns any field the spec touches wins,
and orders is the fallback when none does. A spec mixing fields from several
domains therefore resolves to the highest-priority source, and fields that
only exist elsewhere read as missing values.
"""
from __future__ import annotations

from report_engine.catalog.loader import load_report_catalog, ReportCatalog, SourceDef
from report_engine.core.logging import get_logger
from report_engine.reports.spec import ReportSpec

logger = get_logger(__name__)

DEFAULT_SOURCE = "orders"


def resolve_source(spec: ReportSpec, catalog: ReportCatalog | None = None) -> SourceDef:
    if catalog is None:
        catalog = load_report_catalog()
    if not catalog.sources:
        raise ValueError("Report catalog defines no sources")

    fields = [f.split(".", 1)[0] for f in spec.touched_fields()]
    for source in catalog.sources:
        if any(source.owns(f) for f in fields):
            logger.debug("Resolved source=%s for fields=%s", source.name, fields)
            return source

    fallback = catalog.source(DEFAULT_SOURCE) or catalog.sources[0]
    logger.debug("No source owns fields=%s; defaulting to %s", fields, fallback.name)
    return fallback
