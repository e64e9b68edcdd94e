"""GET /templates ... and POST /templates/{id}/execute -- curated report presets."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from report_engine.api.deps import get_report_engine, get_tenant_id
from report_engine.reports.service import ReportEngine
from report_engine.reports.spec import DateRange, ReportResult
from report_engine.reports.templates import Template

router = APIRouter()



class TemplateExecuteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date_range: DateRange | None = Field(None, alias="dateRange")
    limit: int | None = None
    offset: int | None = None



# Static paths are registered before "/{template_id}" so they are matched first.

@router.get("", response_model=list[Template])
def list_templates(engine: ReportEngine = Depends(get_report_engine)) -> list[Template]:
    return engine.list_templates()


@router.get("/featured", response_model=list[Template])
def featured_templates(engine: ReportEngine = Depends(get_report_engine)) -> list[Template]:
    return engine.featured_templates()


@router.get("/search", response_model=list[Template])
def search_templates(
    q: str = Query("", description="Matched against name, description and tags"),
    engine: ReportEngine = Depends(get_report_engine),
) -> list[Template]:
    return engine.search_templates(q)


@router.get("/category/{category}", response_model=list[Template])
def templates_by_category(category: str, engine: ReportEngine = Depends(get_report_engine)) -> list[Template]:
    return engine.list_templates_by_category(category)


@router.get("/{template_id}", response_model=Template)
def get_template(template_id: str, engine: ReportEngine = Depends(get_report_engine)) -> Template:
    return engine.get_template(template_id)


@router.post("/{template_id}/execute", response_model=ReportResult)
def execute_template(
    template_id: str,
    req: TemplateExecuteRequest | None = None,
    use_cache: bool = Query(True),
    tenant_id: str = Depends(get_tenant_id),
    engine: ReportEngine = Depends(get_report_engine),
) -> ReportResult:
    """Run a template's spec, optionally narrowed by a date range and page."""
    overrides = req.model_dump(exclude_none=True) if req is not None else {}
    return engine.execute_template(template_id, tenant_id, use_cache=use_cache, **overrides)
