"""Threshold colour resolution for stat and table cells."""

from __future__ import annotations

import math

from promboard.dashboards.models import ThresholdConfig, ThresholdStep

DEFAULT_COLOR = "#ffffff"

# Grafana named colours to hex
GRAFANA_COLORS: dict[str, str] = {
    "green": "#73BF69",
    "red": "#F2495C",
    "yellow": "#FADE2A",
    "orange": "#FF9830",
    "blue": "#5794F2",
    "purple": "#B877D9",
    "dark-green": "#37872D",
    "semi-dark-green": "#56A64B",
    "light-green": "#96D98D",
    "super-light-green": "#C8F2C2",
    "dark-yellow": "#CC9D00",
    "semi-dark-yellow": "#E5AC0E",
    "light-yellow": "#FFEE52",
    "super-light-yellow": "#FFF899",
    "dark-red": "#C4162A",
    "semi-dark-red": "#E02F44",
    "light-red": "#FF7383",
    "super-light-red": "#FFA6B0",
    "dark-blue": "#1F60C4",
    "semi-dark-blue": "#3274D9",
    "light-blue": "#8AB8FF",
    "super-light-blue": "#C0D8FF",
    "dark-orange": "#E55400",
    "semi-dark-orange": "#FA6400",
    "light-orange": "#FFAD5A",
    "super-light-orange": "#FFD599",
    "dark-purple": "#8F3BB8",
    "semi-dark-purple": "#A352CC",
    "light-purple": "#CA95E5",
    "super-light-purple": "#DEB6F2",
    "white": "#FFFFFF",
    "black": "#000000",
    "gray": "#808080",
    "text": "#DCE4ED",
}


def resolve_color(color: str) -> str:
    """Convert a Grafana colour name or hex string to hex."""
    if color.startswith("#"):
        return color
    return GRAFANA_COLORS.get(color, GRAFANA_COLORS["green"])


def _ordered_steps(thresholds: ThresholdConfig) -> list[ThresholdStep]:
    # Base (None) steps first, then ascending by value
    return sorted(
        thresholds.steps,
        key=lambda s: (s.value is not None, s.value if s.value is not None else 0.0),
    )


def threshold_step_color(value: float, thresholds: ThresholdConfig | None) -> str | None:
    """
    Colour name of the step that classifies ``value``.

    The highest step whose value is <= ``value`` wins; otherwise the base
    step. NaN always classifies as the base step. Returns None when there
    are no steps.
    """
    if thresholds is None or not thresholds.steps:
        return None

    steps = _ordered_steps(thresholds)
    color = steps[0].color
    if math.isnan(value):
        return color

    for step in steps:
        if step.value is None or value >= step.value:
            color = step.color
    return color


def threshold_color(value: float, thresholds: ThresholdConfig | None) -> str:
    """Hex colour for ``value``; white when no thresholds are configured."""
    color = threshold_step_color(value, thresholds)
    if color is None:
        return DEFAULT_COLOR
    return resolve_color(color)


def threshold_colors(thresholds: ThresholdConfig | None) -> list[str]:
    """Resolved colour of every step, in declaration order."""
    if thresholds is None or not thresholds.steps:
        return [DEFAULT_COLOR]
    return [resolve_color(step.color) for step in thresholds.steps]
