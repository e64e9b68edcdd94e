"""
Export formatter -- turns a ReportResult into downloadable bytes.

  csv    header from the first row's keys, RFC-4180 quoting
  json   the full result (rows + metadata), pretty-printed, camelCase keys
  excel  delegated to a registered ByteEncoder (openpyxl by default)
  pdf    delegated to a ByteEncoder supplied by the host

Binary encoders receive a TabularHandoff: ordered headers plus rows as
lists, with ``_formatted`` companion columns removed.
"""
from __future__ import annotations

import csv
import io
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field

from report_engine.core.errors import ExportError
from report_engine.core.logging import get_logger
from report_engine.reports.formatting import FORMATTED_SUFFIX
from report_engine.reports.spec import ReportResult

logger = get_logger(__name__)

ExportFormat = Literal["csv", "json", "pdf", "excel"]

EXPORT_FORMATS: tuple[str, ...] = ("csv", "json", "pdf", "excel")

MEDIA_TYPES: dict[str, str] = {
    "csv": "text/csv; charset=utf-8",
    "json": "application/json",
    "pdf": "application/pdf",
    "excel": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

FILE_EXTENSIONS: dict[str, str] = {
    "csv": "csv",
    "json": "json",
    "pdf": "pdf",
    "excel": "xlsx",
}


class ExportOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    orientation: Literal["portrait", "landscape"] = "portrait"
    include_charts: bool = Field(False, alias="includeCharts")
    title: str = "Report"
    filename: str | None = None

    def resolved_filename(self, fmt: str) -> str:
        base = self.filename or self.title.strip().lower().replace(" ", "_") or "report"
        ext = FILE_EXTENSIONS.get(fmt, fmt)
        return base if base.endswith(f".{ext}") else f"{base}.{ext}"


class TabularHandoff(BaseModel):
    """Neutral table shape handed to binary document encoders."""

    model_config = ConfigDict(populate_by_name=True)

    headers: list[str]
    rows: list[list[Any]]
    title: str
    generated_at: datetime = Field(alias="generatedAt")
    row_count: int = Field(alias="rowCount")


class ByteEncoder(Protocol):
    def encode(self, handoff: TabularHandoff, options: ExportOptions) -> bytes:
        ...


# ── Row helpers ──────────────────────────────────────────

def strip_formatted(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Copies of *rows* without the ``_formatted`` companion columns."""
    return [
        {k: v for k, v in row.items() if not k.endswith(FORMATTED_SUFFIX)}
        for row in rows
    ]


def _headers(rows: list[dict[str, Any]]) -> list[str]:
    if not rows:
        return []
    return [k for k in rows[0] if not k.endswith(FORMATTED_SUFFIX)]


# ── Text formats ─────────────────────────────────────────

def to_csv(rows: list[dict[str, Any]]) -> str:
    """CSV text for *rows*; raises ExportError when there is nothing to export."""
    if not rows:
        raise ExportError("No data to export")

    headers = list(rows[0].keys())
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([row.get(h) for h in headers])
    return buf.getvalue()


def to_json(result: ReportResult) -> str:
    return result.model_dump_json(by_alias=True, indent=2)


def to_tabular_handoff(
    result: ReportResult,
    title: str = "Report",
    prefer_formatted: bool = False,
) -> TabularHandoff:
    """Flatten a result for document encoders.

    With ``prefer_formatted`` a metric cell shows its formatted companion
    (``$1,234.00``) when one exists.
    """
    headers = _headers(result.rows)
    table: list[list[Any]] = []
    for row in result.rows:
        cells = []
        for h in headers:
            formatted = row.get(f"{h}{FORMATTED_SUFFIX}") if prefer_formatted else None
            cells.append(formatted if formatted is not None else row.get(h))
        table.append(cells)
    return TabularHandoff(
        headers=headers,
        rows=table,
        title=title,
        generated_at=result.metadata.generated_at,
        row_count=len(table),
    )


# ── Dispatch ─────────────────────────────────────────────

def ensure_exportable(fmt: str, encoders: Mapping[str, ByteEncoder] | None = None) -> None:
    """Raise ExportError unless *fmt* can be produced with *encoders*."""
    if fmt not in EXPORT_FORMATS:
        raise ExportError(f"Unsupported export format '{fmt}'. Use one of: {', '.join(EXPORT_FORMATS)}")
    if fmt not in ("csv", "json") and fmt not in (encoders or {}):
        raise ExportError(f"No encoder registered for '{fmt}' export")


def export_result(
    result: ReportResult,
    fmt: str,
    options: ExportOptions | None = None,
    encoders: Mapping[str, ByteEncoder] | None = None,
) -> bytes:
    """Render *result* in *fmt* and return the file body."""
    options = options or ExportOptions()
    encoders = encoders or {}

    ensure_exportable(fmt, encoders)

    if fmt == "json":
        return to_json(result).encode("utf-8")

    if not result.rows:
        raise ExportError("No data to export")

    if fmt == "csv":
        return to_csv(result.rows).encode("utf-8")

    encoder = encoders[fmt]
    handoff = to_tabular_handoff(result, title=options.title)
    logger.info("Encoding %s export: %d rows x %d cols", fmt, handoff.row_count, len(handoff.headers))
    return encoder.encode(handoff, options)
