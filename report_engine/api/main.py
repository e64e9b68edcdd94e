"""
FastAPI application entry-point.
"""
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from report_engine.api.routers import catalog, reports, templates
from report_engine.core.errors import (
    AggregationError,
    DeadlineExceeded,
    ExportError,
    InvalidSpecError,
    ReportEngineError,
    SourceQueryError,
    TemplateNotFoundError,
)
from report_engine.core.logging import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Report Engine",
    version="0.1.0",
    description="Declarative report aggregation over a governed catalog",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(reports.router, prefix="/reports", tags=["Reports"])
app.include_router(templates.router, prefix="/templates", tags=["Templates"])
app.include_router(catalog.router, tags=["Catalog"])


# ── Error mapping ───────────────────────────────────────

# Most specific first; DeadlineExceeded is a SourceQueryError
_STATUS_CODES: list[tuple[type[ReportEngineError], int]] = [
    (InvalidSpecError, 400),
    (ExportError, 400),
    (TemplateNotFoundError, 404),
    (DeadlineExceeded, 504),
    (SourceQueryError, 502),
    (AggregationError, 500),
]


def status_for(exc: ReportEngineError) -> int:
    for exc_type, status in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return status
    return 500


@app.exception_handler(ReportEngineError)
async def report_engine_error_handler(request: Request, exc: ReportEngineError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    body: dict = {"error": type(exc).__name__, "detail": str(exc)}
    if isinstance(exc, InvalidSpecError):
        body["errors"] = exc.errors
    return JSONResponse(status_code=status, content=body)


@app.get("/health")
def health():
    return {"status": "ok"}
