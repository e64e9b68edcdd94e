"""
GET /dimensions, GET /metrics, GET /catalog -- report builder metadata.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from report_engine.api.deps import get_report_engine
from report_engine.reports.service import ReportEngine
from report_engine.reports.spec import Dimension, Metric

router = APIRouter()



class SourceItem(BaseModel):
    name: str
    table: str
    timestamp_column: str
    fields: list[str]


class CatalogResponse(BaseModel):
    dimensions: list[Dimension]
    metrics: list[Metric]
    sources: list[SourceItem]
    max_limit: int



@router.get("/dimensions", response_model=list[Dimension])
def list_dimensions(engine: ReportEngine = Depends(get_report_engine)) -> list[Dimension]:
    """Return every selectable dimension."""
    return engine.list_dimensions()


@router.get("/metrics", response_model=list[Metric])
def list_metrics(engine: ReportEngine = Depends(get_report_engine)) -> list[Metric]:
    """Return every selectable metric with its default aggregation and format."""
    return engine.list_metrics()


@router.get("/catalog", response_model=CatalogResponse)
def full_catalog(engine: ReportEngine = Depends(get_report_engine)) -> CatalogResponse:
    """Return the complete report catalog for the report builder sidebar."""
    return CatalogResponse(
        dimensions=engine.list_dimensions(),
        metrics=engine.list_metrics(),
        sources=[
            SourceItem(
                name=s.name,
                table=s.table,
                timestamp_column=s.timestamp_column,
                fields=list(s.fields),
            )
            for s in engine.catalog.sources
        ],
        max_limit=engine.settings.report_max_limit,
    )
