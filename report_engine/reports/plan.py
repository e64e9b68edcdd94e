"""
RecordQuery -- what a record source is asked for on behalf of one spec.

Built once per execution from a validated spec and its resolved source, and
handed unchanged to whichever execution strategy runs.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from report_engine.catalog.loader import ReportCatalog, SourceDef
from report_engine.core.utils import Deadline
from report_engine.reports.spec import DateRange, Dimension, Filter, Metric, ReportSpec


@dataclass
class RecordQuery:
    source: SourceDef
    catalog: ReportCatalog
    group_by: list[Dimension] = field(default_factory=list)
    metrics: list[Metric] = field(default_factory=list)
    filters: list[Filter] = field(default_factory=list)
    date_range: DateRange | None = None
    tenant_id: str | None = None
    deadline: Deadline = field(default_factory=Deadline)

    @property
    def table(self) -> str:
        return self.source.table

    def column_for(self, name: str) -> str:
        return self.catalog.column_for(name, self.source)


def _group_dimensions(spec: ReportSpec, catalog: ReportCatalog) -> list[Dimension]:
    """Dimensions to partition by, carrying type/granularity for each group field."""
    dims: list[Dimension] = []
    for name in spec.group_fields():
        dim = spec.dimension_for(name)
        if dim is None:
            known = catalog.dimension(name)
            dim = known.to_dimension() if known else Dimension(field=name, label=name)
        dims.append(dim)
    return dims


def build_record_query(
    spec: ReportSpec,
    source: SourceDef,
    catalog: ReportCatalog,
    tenant_id: str | None = None,
    deadline: Deadline | None = None,
) -> RecordQuery:
    return RecordQuery(
        source=source,
        catalog=catalog,
        group_by=_group_dimensions(spec, catalog),
        metrics=list(spec.metrics),
        filters=list(spec.filters),
        date_range=spec.date_range,
        tenant_id=tenant_id,
        deadline=deadline or Deadline(),
    )
