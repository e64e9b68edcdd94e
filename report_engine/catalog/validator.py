"""
Validates a ReportSpec against the report catalog.

Checks performed:
  1. At least one dimension and one metric
  2. Every referenced field (dimension, metric, filter, sort, grouping) is a
     catalog field, a derived field, or a source column / dotted path
  3. No metric field is requested twice (rows are keyed by field)
  4. Granularity is only set on date dimensions
  5. ``between`` carries ``value2``; ``in`` / ``not_in`` carry a list
  6. The date range parses and starts before it ends
  7. limit / offset are non-negative and limit stays under the cap

Validation never touches the record source.
"""
from __future__ import annotations

from report_engine.catalog.loader import load_report_catalog, ReportCatalog
from report_engine.core.errors import InvalidSpecError
from report_engine.reports.dates import resolve_bounds
from report_engine.reports.spec import ReportSpec

_FORMATTED_SUFFIX = "_formatted"


def validate_spec(
    spec: ReportSpec,
    catalog: ReportCatalog | None = None,
    max_limit: int | None = None,
) -> list[str]:
    """Return a list of validation error messages (empty list = spec is valid)."""
    if catalog is None:
        catalog = load_report_catalog()

    errors: list[str] = []

    if not spec.dimensions:
        errors.append("At least one dimension is required.")
    if not spec.metrics:
        errors.append("At least one metric is required.")

    for dim in spec.dimensions:
        if not catalog.is_known_field(dim.field):
            errors.append(f"Unknown dimension field '{dim.field}'.")
        if dim.granularity and dim.type != "date":
            errors.append(
                f"Dimension '{dim.field}' has granularity '{dim.granularity}' "
                f"but type '{dim.type}'; granularity requires type 'date'."
            )

    seen_metrics: set[str] = set()
    for metric in spec.metrics:
        if not catalog.is_known_field(metric.field):
            errors.append(
                f"Unknown metric field '{metric.field}'. "
                f"Catalog metrics: {', '.join(catalog.metrics)}"
            )
        if metric.field in seen_metrics:
            errors.append(f"Metric field '{metric.field}' is requested more than once.")
        seen_metrics.add(metric.field)

    for flt in spec.filters:
        if not catalog.is_known_field(flt.field):
            errors.append(f"Unknown filter field '{flt.field}'.")
        if flt.operator == "between" and flt.value2 is None:
            errors.append(f"Filter on '{flt.field}' uses 'between' but has no value2.")
        if flt.operator in ("in", "not_in") and not isinstance(flt.value, list):
            errors.append(
                f"Filter on '{flt.field}' uses '{flt.operator}' and needs a list value."
            )

    for sort in spec.sorting:
        base = sort.field
        if base.endswith(_FORMATTED_SUFFIX) and base[: -len(_FORMATTED_SUFFIX)] in seen_metrics:
            continue
        if not catalog.is_known_field(base):
            errors.append(f"Unknown sort field '{sort.field}'.")

    for group in spec.grouping or []:
        if not catalog.is_known_field(group.field):
            errors.append(f"Unknown grouping field '{group.field}'.")

    if spec.date_range is not None:
        try:
            start, end, _ = resolve_bounds(spec.date_range)
        except ValueError as exc:
            errors.append(f"Invalid date range: {exc}.")
        else:
            if start > end:
                errors.append(
                    f"Date range start {spec.date_range.start} is after end {spec.date_range.end}."
                )

    if spec.limit is not None:
        if spec.limit < 0:
            errors.append(f"limit must be non-negative (got {spec.limit}).")
        elif max_limit is not None and spec.limit > max_limit:
            errors.append(f"Requested limit ({spec.limit}) exceeds maximum allowed ({max_limit}).")
    if spec.offset is not None and spec.offset < 0:
        errors.append(f"offset must be non-negative (got {spec.offset}).")

    return errors


def ensure_valid(
    spec: ReportSpec,
    catalog: ReportCatalog | None = None,
    max_limit: int | None = None,
) -> None:
    """Raise InvalidSpecError carrying every validation message."""
    errors = validate_spec(spec, catalog, max_limit)
    if errors:
        raise InvalidSpecError(errors)
