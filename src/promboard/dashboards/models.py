"""Normalized dashboard data models.

Render-ready Python models produced from Grafana dashboard JSON. Only the
subset the renderer understands survives normalization.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PanelType(str, Enum):
    """Panel shapes the renderer supports."""

    TIMESERIES = "timeseries"
    STAT = "stat"
    TABLE = "table"


class VariableType(str, Enum):
    """Template variable kinds."""

    QUERY = "query"
    CUSTOM = "custom"
    CONSTANT = "constant"
    TEXTBOX = "textbox"
    INTERVAL = "interval"


SUPPORTED_PANEL_TYPES = frozenset(t.value for t in PanelType)
SUPPORTED_VARIABLE_TYPES = frozenset(
    {VariableType.QUERY.value, VariableType.CUSTOM.value, VariableType.CONSTANT.value}
)


@dataclass(frozen=True)
class GridPos:
    """Panel position on the 24-column Grafana grid."""

    x: int = 0
    y: int = 0
    w: int = 12
    h: int = 8

    @property
    def sort_key(self) -> tuple[int, int]:
        """Reading order: row first, then column."""
        return (self.y, self.x)


@dataclass(frozen=True)
class ThresholdStep:
    """A (value, color) rule; value None marks the base step."""

    color: str
    value: float | None = None


@dataclass(frozen=True)
class ThresholdConfig:
    """Threshold steps from fieldConfig.defaults.thresholds."""

    mode: str = "absolute"
    steps: tuple[ThresholdStep, ...] = ()


@dataclass(frozen=True)
class NormalizedQuery:
    """A PromQL target; expr may contain $name / ${name} placeholders."""

    expr: str
    ref_id: str = "A"
    legend_format: str | None = None


@dataclass(frozen=True)
class NormalizedPanel:
    """A supported panel with at least one usable query."""

    id: int
    title: str
    type: PanelType
    queries: tuple[NormalizedQuery, ...]
    grid_pos: GridPos = field(default_factory=GridPos)
    thresholds: ThresholdConfig | None = None

    def __post_init__(self) -> None:
        if not self.queries:
            raise ValueError(f"Panel {self.id} must have at least one query")


@dataclass(frozen=True)
class TemplateVariable:
    """Dashboard template variable."""

    name: str
    type: VariableType
    label: str | None = None
    query: str | None = None
    options: tuple[str, ...] | None = None
    current: str | None = None
    multi: bool = False
    include_all: bool = False

    @property
    def display_label(self) -> str:
        return self.label or self.name


@dataclass(frozen=True)
class NormalizedDashboard:
    """Complete render-ready dashboard."""

    title: str
    panels: tuple[NormalizedPanel, ...] = ()
    variables: tuple[TemplateVariable, ...] = ()

    def panel(self, panel_id: int) -> NormalizedPanel | None:
        for panel in self.panels:
            if panel.id == panel_id:
                return panel
        return None


@dataclass
class ParseResult:
    """Normalized dashboard plus warnings for content that was skipped."""

    dashboard: NormalizedDashboard
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Summary used by `promboard parse --format json`."""
        return {
            "title": self.dashboard.title,
            "panels": [
                {
                    "id": p.id,
                    "title": p.title,
                    "type": p.type.value,
                    "gridPos": {"x": p.grid_pos.x, "y": p.grid_pos.y, "w": p.grid_pos.w, "h": p.grid_pos.h},
                    "queries": [
                        {"refId": q.ref_id, "expr": q.expr, "legendFormat": q.legend_format}
                        for q in p.queries
                    ],
                }
                for p in self.dashboard.panels
            ],
            "variables": [
                {"name": v.name, "type": v.type.value, "query": v.query, "current": v.current}
                for v in self.dashboard.variables
            ],
            "warnings": list(self.warnings),
        }
