"""
Spreadsheet encoder for report exports (openpyxl).
"""
from __future__ import annotations

import io

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.worksheet.worksheet import Worksheet

from report_engine.reports.export import ExportOptions, TabularHandoff

# Excel caps sheet titles at 31 characters and forbids a few symbols
_SHEET_TITLE_MAX = 31
_SHEET_TITLE_FORBIDDEN = set("[]:*?/\\")


def sheet_title(title: str) -> str:
    cleaned = "".join(ch for ch in title if ch not in _SHEET_TITLE_FORBIDDEN).strip()
    return cleaned[:_SHEET_TITLE_MAX] or "Report"


class XlsxEncoder:
    """Writes the handoff table to a single-sheet .xlsx workbook."""

    def encode(self, handoff: TabularHandoff, options: ExportOptions) -> bytes:
        wb = Workbook()
        ws: Worksheet = wb.active
        ws.title = sheet_title(handoff.title)

        ws.append(handoff.headers)
        for cell in ws[1]:
            cell.font = Font(bold=True)
        for row in handoff.rows:
            ws.append(row)

        ws.freeze_panes = "A2"
        if options.orientation == "landscape":
            ws.page_setup.orientation = ws.ORIENTATION_LANDSCAPE

        out = io.BytesIO()
        wb.save(out)
        return out.getvalue()
