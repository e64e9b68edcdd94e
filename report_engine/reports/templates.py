"""
Report templates -- curated, read-only report presets.

Templates live in ``semantic_layer/report_templates.yml`` and are loaded
once per process. Each one carries a ready-made spec fragment plus display
hints (chart type, featured flag, tags).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field

from report_engine.core.errors import TemplateNotFoundError
from report_engine.reports.spec import Dimension, Filter, Metric, ReportSpec, Sort

_TEMPLATES_PATH = Path(__file__).resolve().parents[2] / "semantic_layer" / "report_templates.yml"

TemplateCategory = Literal["sales", "customer", "financial", "operational", "product"]
ChartType = Literal["bar", "line", "pie", "table", "area"]


class Template(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    description: str = ""
    category: TemplateCategory
    dimensions: list[Dimension] = Field(default_factory=list)
    metrics: list[Metric] = Field(default_factory=list)
    filters: list[Filter] = Field(default_factory=list)
    sorting: list[Sort] = Field(default_factory=list)
    chart_type: ChartType = Field("table", alias="chartType")
    is_featured: bool = Field(False, alias="isFeatured")
    tags: list[str] = Field(default_factory=list)

    def to_spec(self, **overrides: Any) -> ReportSpec:
        """Build a ReportSpec from this template; keyword overrides win."""
        payload: dict[str, Any] = {
            "dimensions": [d.model_dump() for d in self.dimensions],
            "metrics": [m.model_dump() for m in self.metrics],
            "filters": [f.model_dump() for f in self.filters],
            "sorting": [s.model_dump() for s in self.sorting],
        }
        payload.update({k: v for k, v in overrides.items() if v is not None})
        return ReportSpec.model_validate(payload)

    def matches(self, query: str) -> bool:
        needle = query.casefold()
        haystack = [self.name, self.description, *self.tags]
        return any(needle in text.casefold() for text in haystack)


class TemplateCatalog:
    """In-memory index over the loaded templates, in file order."""

    def __init__(self, templates: list[Template]):
        self._templates = list(templates)
        self._by_id = {t.id: t for t in self._templates}

    def __len__(self) -> int:
        return len(self._templates)

    def all(self) -> list[Template]:
        return list(self._templates)

    def get_by_id(self, template_id: str) -> Template:
        try:
            return self._by_id[template_id]
        except KeyError:
            raise TemplateNotFoundError(template_id) from None

    def get_by_category(self, category: str) -> list[Template]:
        return [t for t in self._templates if t.category == category]

    def get_featured(self) -> list[Template]:
        return [t for t in self._templates if t.is_featured]

    def search(self, query: str) -> list[Template]:
        """Case-insensitive substring search over name, description and tags."""
        query = query.strip()
        if not query:
            return []
        return [t for t in self._templates if t.matches(query)]

    def categories(self) -> list[str]:
        seen: dict[str, None] = {}
        for t in self._templates:
            seen.setdefault(t.category, None)
        return list(seen)


def parse_templates(raw_yaml: dict[str, Any]) -> TemplateCatalog:
    templates = [Template.model_validate(t) for t in raw_yaml.get("templates", [])]
    ids = [t.id for t in templates]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ValueError(f"Duplicate template ids: {', '.join(duplicates)}")
    return TemplateCatalog(templates)


@lru_cache
def load_template_catalog(path: Path | None = None) -> TemplateCatalog:
    """Load and cache the report templates from YAML."""
    with open(path or _TEMPLATES_PATH) as f:
        raw = yaml.safe_load(f)
    return parse_templates(raw or {})
