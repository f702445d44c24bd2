"""
Dashboard definition handling.

Normalizes Grafana dashboard JSON into render-ready models, resolves
template variables, and classifies values against thresholds.
"""

from promboard.dashboards.catalog import DashboardEntry, list_dashboards
from promboard.dashboards.models import (
    GridPos,
    NormalizedDashboard,
    NormalizedPanel,
    NormalizedQuery,
    PanelType,
    ParseResult,
    TemplateVariable,
    ThresholdConfig,
    ThresholdStep,
    VariableType,
)
from promboard.dashboards.parser import load_dashboard_file, parse_dashboard
from promboard.dashboards.thresholds import (
    resolve_color,
    threshold_color,
    threshold_colors,
    threshold_step_color,
)
from promboard.dashboards.variables import (
    LabelValuesQuery,
    default_variable_values,
    parse_label_values_query,
    parse_query_result_query,
    substitute_variables,
)

__all__ = [
    "DashboardEntry",
    "list_dashboards",
    "GridPos",
    "NormalizedDashboard",
    "NormalizedPanel",
    "NormalizedQuery",
    "PanelType",
    "ParseResult",
    "TemplateVariable",
    "ThresholdConfig",
    "ThresholdStep",
    "VariableType",
    "parse_dashboard",
    "load_dashboard_file",
    "resolve_color",
    "threshold_color",
    "threshold_colors",
    "threshold_step_color",
    "LabelValuesQuery",
    "substitute_variables",
    "parse_label_values_query",
    "parse_query_result_query",
    "default_variable_values",
]
