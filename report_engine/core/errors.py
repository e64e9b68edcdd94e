"""
Exception hierarchy for the report engine.

Every failure surfaced to an API caller is one of these types, so the HTTP
layer can map them to status codes without inspecting messages.
"""
from __future__ import annotations


class ReportEngineError(Exception):
    """Base class for all report engine failures."""


class InvalidSpecError(ReportEngineError):
    """The report spec failed validation. Raised before any data access."""

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors: list[str] = list(errors)
        super().__init__("; ".join(self.errors))


class SourceQueryError(ReportEngineError):
    """A record-source call failed (unreachable, unsupported construct, ...)."""


class DeadlineExceeded(SourceQueryError):
    """The execution deadline passed before the record source answered."""


class AggregationError(ReportEngineError):
    """A row value had a shape the aggregation engine cannot handle."""


class ExportError(ReportEngineError):
    """Unsupported export format, missing encoder, or empty dataset."""


class TemplateNotFoundError(ReportEngineError):
    """No report template with the requested id."""

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Unknown report template '{template_id}'")


class DeliveryError(ReportEngineError):
    """A scheduled report could not be handed to its delivery transport."""
