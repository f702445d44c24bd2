"""
Grafana dashboard JSON normalization.

Turns a raw dashboard document into a NormalizedDashboard. Only a malformed
top-level document is fatal; everything else that cannot be rendered is
skipped and reported as a warning string.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from promboard.core.errors import DashboardLoadError, StructuralError
from promboard.dashboards.models import (
    SUPPORTED_PANEL_TYPES,
    SUPPORTED_VARIABLE_TYPES,
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

PROMETHEUS_DATASOURCE = "prometheus"
DEFAULT_TITLE = "Untitled Dashboard"


def _panel_label(raw: dict[str, Any], panel_id: Any) -> str:
    return f'Panel "{raw.get("title", "")}" ({panel_id})'


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value)
    return default


def extract_grid_pos(raw: dict[str, Any]) -> GridPos:
    """Read gridPos, falling back to the default 12x8 tile at the origin."""
    grid = raw.get("gridPos")
    if not isinstance(grid, dict):
        return GridPos()
    default = GridPos()
    return GridPos(
        x=_as_int(grid.get("x"), default.x),
        y=_as_int(grid.get("y"), default.y),
        w=_as_int(grid.get("w"), default.w),
        h=_as_int(grid.get("h"), default.h),
    )


def extract_thresholds(raw: dict[str, Any]) -> ThresholdConfig | None:
    """Best-effort read of fieldConfig.defaults.thresholds.

    Any structural mismatch means "no thresholds", never an error.
    """
    field_config = raw.get("fieldConfig")
    if not isinstance(field_config, dict):
        return None
    defaults = field_config.get("defaults")
    if not isinstance(defaults, dict):
        return None
    thresholds = defaults.get("thresholds")
    if not isinstance(thresholds, dict):
        return None
    raw_steps = thresholds.get("steps")
    if not isinstance(raw_steps, list):
        return None

    steps: list[ThresholdStep] = []
    for raw_step in raw_steps:
        if not isinstance(raw_step, dict):
            return None
        value = raw_step.get("value")
        if value is not None:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return None
            value = float(value)
        color = raw_step.get("color")
        steps.append(ThresholdStep(color=color if isinstance(color, str) and color else "green", value=value))

    mode = thresholds.get("mode")
    return ThresholdConfig(
        mode=mode if isinstance(mode, str) and mode else "absolute",
        steps=tuple(steps),
    )


def _datasource_type(datasource: Any) -> str | None:
    # Legacy dashboards name the datasource by a bare string; "$ds" and
    # "${ds}" are template references resolved by Grafana itself
    if isinstance(datasource, dict):
        ds_type = datasource.get("type")
        return ds_type if isinstance(ds_type, str) and ds_type else None
    if isinstance(datasource, str) and datasource and not datasource.startswith("$"):
        return datasource
    return None


def extract_queries(raw: dict[str, Any], label: str, warnings: list[str]) -> list[NormalizedQuery]:
    """Collect usable Prometheus targets, warning about each dropped one."""
    targets = raw.get("targets")
    if not isinstance(targets, list):
        return []

    queries: list[NormalizedQuery] = []
    for index, target in enumerate(targets):
        if not isinstance(target, dict):
            warnings.append(f"{label}: target {index} is not an object, skipping query")
            continue

        ref_id = target.get("refId") or "A"

        ds_type = _datasource_type(target.get("datasource"))
        if ds_type and ds_type.lower() != PROMETHEUS_DATASOURCE:
            warnings.append(f'{label}: datasource "{ds_type}" not supported, skipping query {ref_id}')
            continue

        expr = target.get("expr")
        if not isinstance(expr, str) or not expr.strip():
            warnings.append(f"{label}: query {ref_id} has an empty expression, skipping query")
            continue

        legend = target.get("legendFormat")
        queries.append(
            NormalizedQuery(
                expr=expr,
                ref_id=str(ref_id),
                legend_format=legend if isinstance(legend, str) and legend else None,
            )
        )
    return queries


def normalize_panel(
    raw: Any, index: int, warnings: list[str]
) -> NormalizedPanel | None:
    """Normalize one raw panel, or return None (with a warning) to skip it."""
    if not isinstance(raw, dict):
        warnings.append(f"Panel at index {index}: not an object, skipping")
        return None

    panel_id = raw.get("id")
    if isinstance(panel_id, bool) or not isinstance(panel_id, int):
        panel_id = index + 1
    label = _panel_label(raw, panel_id)

    transformations = raw.get("transformations")
    if isinstance(transformations, list) and transformations:
        warnings.append(f"{label}: transformations not supported, ignoring")

    panel_type = raw.get("type")
    if panel_type not in SUPPORTED_PANEL_TYPES:
        warnings.append(f'{label}: type "{panel_type}" not supported, skipping')
        return None

    queries = extract_queries(raw, label, warnings)
    if not queries:
        warnings.append(f"{label}: no valid queries found, skipping")
        return None

    title = raw.get("title")
    return NormalizedPanel(
        id=panel_id,
        title=title if isinstance(title, str) and title else f"Panel {panel_id}",
        type=PanelType(panel_type),
        queries=tuple(queries),
        grid_pos=extract_grid_pos(raw),
        thresholds=extract_thresholds(raw),
    )


def _variable_query(raw_query: Any) -> str | None:
    # Either a bare string or {"query": "...", "refId": ...}
    if isinstance(raw_query, str):
        return raw_query or None
    if isinstance(raw_query, dict):
        nested = raw_query.get("query")
        if isinstance(nested, str) and nested:
            return nested
    return None


def _variable_options(raw_options: Any) -> tuple[str, ...] | None:
    if not isinstance(raw_options, list):
        return None
    values: list[str] = []
    for option in raw_options:
        if isinstance(option, dict):
            value = option.get("value")
            if isinstance(value, list):
                value = value[0] if value else None
            if value is not None:
                values.append(str(value))
        elif isinstance(option, (str, int, float)) and not isinstance(option, bool):
            values.append(str(option))
    return tuple(values) if values else None


def _variable_current(raw_current: Any) -> str | None:
    if not isinstance(raw_current, dict):
        return None
    value = raw_current.get("value")
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None or value == "":
        return None
    return str(value)


def extract_variables(document: dict[str, Any], warnings: list[str]) -> list[TemplateVariable]:
    """Extract query/custom/constant template variables."""
    templating = document.get("templating")
    if not isinstance(templating, dict):
        return []
    raw_list = templating.get("list")
    if not isinstance(raw_list, list):
        return []

    variables: list[TemplateVariable] = []
    for index, raw in enumerate(raw_list):
        if not isinstance(raw, dict):
            warnings.append(f"Variable at index {index}: not an object, skipping")
            continue

        name = raw.get("name")
        var_type = raw.get("type")
        if not isinstance(name, str) or not name:
            warnings.append(f"Variable at index {index}: missing name, skipping")
            continue
        if var_type not in SUPPORTED_VARIABLE_TYPES:
            warnings.append(f'Variable "{name}": type "{var_type}" not supported, skipping')
            continue

        label = raw.get("label")
        query = _variable_query(raw.get("query"))
        options = _variable_options(raw.get("options"))
        if options is None and var_type == VariableType.CUSTOM.value and query:
            # custom variables list their values as "a,b,c"
            options = tuple(v.strip() for v in query.split(",") if v.strip()) or None
        variables.append(
            TemplateVariable(
                name=name,
                type=VariableType(var_type),
                label=label if isinstance(label, str) and label else None,
                query=query,
                options=options,
                current=_variable_current(raw.get("current")),
                multi=bool(raw.get("multi", False)),
                include_all=bool(raw.get("includeAll", False)),
            )
        )
    return variables


def parse_dashboard(document: Any) -> ParseResult:
    """
    Normalize a Grafana dashboard document.

    Args:
        document: Decoded dashboard JSON

    Returns:
        ParseResult with the normalized dashboard and collected warnings

    Raises:
        StructuralError: If the document is not an object with a panels array
    """
    if not isinstance(document, dict):
        raise StructuralError("Invalid dashboard JSON: not an object")

    raw_panels = document.get("panels")
    if not isinstance(raw_panels, list):
        raise StructuralError("Invalid dashboard JSON: missing panels array")

    warnings: list[str] = []
    variables = extract_variables(document, warnings)

    panels: list[NormalizedPanel] = []
    for index, raw in enumerate(raw_panels):
        panel = normalize_panel(raw, index, warnings)
        if panel is not None:
            panels.append(panel)

    annotations = document.get("annotations")
    if isinstance(annotations, dict):
        annotation_list = annotations.get("list")
        if isinstance(annotation_list, list) and annotation_list:
            warnings.append("Dashboard uses annotations which is not supported")

    panels.sort(key=lambda p: p.grid_pos.sort_key)

    title = document.get("title")
    return ParseResult(
        dashboard=NormalizedDashboard(
            title=title if isinstance(title, str) and title else DEFAULT_TITLE,
            panels=tuple(panels),
            variables=tuple(variables),
        ),
        warnings=warnings,
    )


def load_dashboard_file(path: str | Path) -> ParseResult:
    """
    Load and normalize a dashboard JSON file.

    Raises:
        DashboardLoadError: If the file is missing, unreadable, not UTF-8 or not JSON
        StructuralError: If the document shape is invalid
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise DashboardLoadError(f"Dashboard file not found: {file_path}", {"path": str(file_path)})

    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise DashboardLoadError(f"Cannot read dashboard file: {file_path}", {"error": str(e)}) from e
    except UnicodeDecodeError as e:
        raise DashboardLoadError(
            f"Cannot decode dashboard file: {file_path}", {"position": e.start}
        ) from e

    try:
        document = json.loads(content)
    except json.JSONDecodeError as e:
        raise DashboardLoadError(
            f"Invalid JSON in dashboard file: {file_path}", {"line": e.lineno}
        ) from e

    return parse_dashboard(document)
