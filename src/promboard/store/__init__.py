"""Dashboard state: history buffers and the refresh coordinator."""

from promboard.store.coordinator import (
    CoordinatorStatus,
    DashboardCoordinator,
    DashboardState,
    PanelData,
)
from promboard.store.history import HistoryBuffer, Trend, calculate_trend

__all__ = [
    "CoordinatorStatus",
    "DashboardCoordinator",
    "DashboardState",
    "PanelData",
    "HistoryBuffer",
    "Trend",
    "calculate_trend",
]
