"""POST /reports/execute, POST /reports/export -- run and download reports."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, Field

from report_engine.api.deps import get_report_engine, get_tenant_id
from report_engine.reports.export import MEDIA_TYPES, ExportFormat, ExportOptions
from report_engine.reports.service import ReportEngine
from report_engine.reports.spec import ReportResult, ReportSpec

router = APIRouter()



class ExportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    spec: ReportSpec
    format: ExportFormat = "csv"
    options: ExportOptions = Field(default_factory=ExportOptions)
    use_cache: bool = Field(True, alias="useCache")


class CacheStatsResponse(BaseModel):
    size: int
    max_size: int
    ttl_seconds: float
    hits: int
    misses: int
    evictions: int
    hit_rate: float



@router.post("/execute", response_model=ReportResult)
def execute_endpoint(
    spec: ReportSpec,
    use_cache: bool = Query(True, description="Serve from / store into the result cache"),
    timeout_ms: int | None = Query(None, ge=1, description="Execution deadline override"),
    tenant_id: str = Depends(get_tenant_id),
    engine: ReportEngine = Depends(get_report_engine),
) -> ReportResult:
    """Validate and execute a report spec for the calling tenant."""
    return engine.execute(spec, tenant_id, use_cache=use_cache, timeout_ms=timeout_ms)


@router.post("/export")
def export_endpoint(
    req: ExportRequest,
    tenant_id: str = Depends(get_tenant_id),
    engine: ReportEngine = Depends(get_report_engine),
) -> Response:
    """Execute a spec and return the result as a file download.

    Formats with no registered encoder (pdf unless the host adds one) are
    rejected with 400 before the report runs.
    """
    engine.ensure_exportable(req.format)
    result = engine.execute(req.spec, tenant_id, use_cache=req.use_cache)
    body = engine.export_result(result, req.format, req.options)
    filename = req.options.resolved_filename(req.format)
    return Response(
        content=body,
        media_type=MEDIA_TYPES[req.format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/cache/stats", response_model=CacheStatsResponse)
def cache_stats_endpoint(engine: ReportEngine = Depends(get_report_engine)):
    """Return report cache statistics."""
    return CacheStatsResponse(**engine.cache_stats())


@router.post("/cache/clear")
def cache_clear_endpoint(
    tenant_id: str | None = Query(None, description="Only clear this tenant's entries"),
    engine: ReportEngine = Depends(get_report_engine),
):
    """Flush the report cache (all tenants unless one is given)."""
    removed = engine.clear_cache(tenant_id)
    return {"cleared": removed}
