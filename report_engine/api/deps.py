"""
FastAPI dependencies.

The report engine is built once per process; tests replace it through
``app.dependency_overrides[get_report_engine]``.
"""
from __future__ import annotations

from functools import lru_cache

from fastapi import Header

from report_engine.core.config import get_settings
from report_engine.db.record_source import SqlRecordSource
from report_engine.reports.service import ReportEngine

DEFAULT_TENANT = "public"


@lru_cache
def get_report_engine() -> ReportEngine:
    settings = get_settings()
    source = SqlRecordSource(
        tenant_column=settings.report_tenant_column,
        timeout_ms=settings.report_query_timeout_ms,
    )
    return ReportEngine(source, settings=settings)


def get_tenant_id(x_tenant_id: str | None = Header(None, description="Tenant scope for report data")) -> str:
    return x_tenant_id or DEFAULT_TENANT
