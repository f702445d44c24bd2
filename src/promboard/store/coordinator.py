"""
Dashboard state coordinator.

DashboardCoordinator is the single owner of the loaded dashboard, the
variable values, the per-series history buffers and the refresh timer.
Observers receive immutable DashboardState snapshots; every change goes
through one of the coordinator's operations.

State machine::

    IDLE -> LOADING -> READY
            LOADING -> FAILED      (definition could not be loaded)
    READY -> LOADING               (reload / switch)

Refresh cycles run inside READY (and over retained panels after a failed
reload) without changing state.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Mapping

import structlog

from promboard.core.errors import (
    PanelFetchError,
    PromboardError,
    StructuralError,
    UnsupportedFeatureWarning,
)
from promboard.dashboards.models import (
    NormalizedDashboard,
    NormalizedPanel,
    TemplateVariable,
    VariableType,
)
from promboard.dashboards.parser import load_dashboard_file
from promboard.dashboards.variables import (
    default_variable_values,
    parse_label_values_query,
    substitute_variables,
)
from promboard.prometheus.client import PrometheusClient
from promboard.prometheus.models import QueryResult, Sample
from promboard.store.history import DEFAULT_CAPACITY, HistoryBuffer, Trend, calculate_trend

logger = structlog.get_logger()

HistoryKey = tuple[int, str]


class CoordinatorStatus(str, Enum):
    """Lifecycle state of the coordinator."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class PanelData:
    """Latest query results for one panel."""

    panel: NormalizedPanel
    results: tuple[QueryResult, ...] = ()
    last_updated: float = 0.0
    error: str | None = None


def _frozen(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class DashboardState:
    """Published snapshot of everything presentation code may read."""

    status: CoordinatorStatus = CoordinatorStatus.IDLE
    title: str = "Loading..."
    dashboard_path: str = ""
    panels: tuple[PanelData, ...] = ()
    warnings: tuple[str, ...] = ()
    variables: tuple[TemplateVariable, ...] = ()
    variable_values: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    variable_options: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: _frozen({}))
    error: str | None = None
    last_refresh: float = 0.0

    @property
    def loading(self) -> bool:
        return self.status is CoordinatorStatus.LOADING


Listener = Callable[[DashboardState], None]


class DashboardCoordinator:
    """
    Loads a dashboard, keeps its variables resolved and its panels refreshed.

    Refresh cycles are tagged with the dashboard generation and the
    variable-values version they started with. A scheduled or explicit
    refresh is skipped while a cycle with the same tag is in flight, and a
    cycle whose tag is out of date when it finishes is discarded instead of
    published.
    """

    def __init__(
        self,
        client: PrometheusClient,
        *,
        dashboard_path: str | Path | None = None,
        time_range: str = "5m",
        refresh_interval: float = 5.0,
        history_capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._time_range = time_range
        self._refresh_interval = refresh_interval
        self._history_capacity = history_capacity
        self._clock = clock

        self._state = DashboardState(dashboard_path=str(dashboard_path) if dashboard_path else "")
        self._dashboard: NormalizedDashboard | None = None
        self._variable_values: dict[str, str] = {}
        self._history: dict[HistoryKey, HistoryBuffer] = {}
        self._listeners: list[Listener] = []

        self._timer: asyncio.Task[None] | None = None
        self._refresh_tasks: set[asyncio.Task[Any]] = set()

        self._generation = 0
        self._values_version = 0
        self._in_flight: tuple[int, int] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        client: PrometheusClient | None = None,
    ) -> "DashboardCoordinator":
        """Build a coordinator (and by default its client) from Settings."""
        return cls(
            client or PrometheusClient.from_settings(settings),
            dashboard_path=settings.dashboard_path,
            time_range=settings.time_range,
            refresh_interval=settings.refresh_interval,
            history_capacity=settings.history_capacity,
        )

    # === Observers ===

    @property
    def state(self) -> DashboardState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        """Remove ``listener``; unknown listeners are ignored."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _commit(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)
        self._notify()

    def _notify(self) -> None:
        state = self._state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("listener_failed", listener=repr(listener))

    # === History ===

    def _history_buffer(self, key: HistoryKey) -> HistoryBuffer:
        buffer = self._history.get(key)
        if buffer is None:
            buffer = HistoryBuffer(self._history_capacity)
            self._history[key] = buffer
        return buffer

    def has_history(self, panel_id: int, ref_id: str) -> bool:
        return (panel_id, ref_id) in self._history

    def history_keys(self) -> frozenset[HistoryKey]:
        return frozenset(self._history)

    def history(self, panel_id: int, ref_id: str) -> list[Sample]:
        """Copy of the recorded samples for a panel query, oldest first."""
        buffer = self._history.get((panel_id, ref_id))
        return buffer.get_all() if buffer else []

    def trend(self, panel_id: int, ref_id: str) -> Trend:
        return calculate_trend(self._history.get((panel_id, ref_id)))

    # === Loading ===

    async def load_dashboard(self, path: str | Path | None = None) -> bool:
        """
        Load (or reload) a dashboard file, resolve its variables and refresh.

        On failure the coordinator moves to FAILED and keeps whatever panels
        it was already showing.

        Returns:
            True if the dashboard was loaded
        """
        target = str(path) if path is not None else self._state.dashboard_path
        self._generation += 1
        self._commit(status=CoordinatorStatus.LOADING, error=None, dashboard_path=target)

        try:
            result = await asyncio.to_thread(load_dashboard_file, target)
        except StructuralError as e:
            logger.error("dashboard_load_failed", path=target, error=e.message)
            self._commit(status=CoordinatorStatus.FAILED, error=e.message)
            return False

        for warning in result.warnings:
            logger.warning(
                "dashboard_unsupported_feature",
                category=UnsupportedFeatureWarning.__name__,
                path=target,
                warning=warning,
            )

        dashboard = result.dashboard
        self._dashboard = dashboard
        self._variable_values = default_variable_values(dashboard.variables)
        self._values_version += 1
        logger.info(
            "dashboard_loaded",
            path=target,
            title=dashboard.title,
            panels=len(dashboard.panels),
            variables=len(dashboard.variables),
            warnings=len(result.warnings),
        )
        self._commit(
            status=CoordinatorStatus.READY,
            title=dashboard.title,
            panels=tuple(PanelData(panel=p) for p in dashboard.panels),
            warnings=tuple(result.warnings),
            variables=dashboard.variables,
            variable_values=_frozen(self._variable_values),
            variable_options=_frozen({}),
            error=None,
            last_refresh=0.0,
        )

        await self.load_variable_options()
        await self.refresh()
        return True

    async def switch_dashboard(self, path: str | Path) -> bool:
        """Drop all history and load a different dashboard."""
        self._history.clear()
        logger.info("dashboard_switch", path=str(path))
        return await self.load_dashboard(path)

    async def load_variable_options(self) -> None:
        """
        Populate option lists for query and custom variables.

        label_values() queries are resolved against the backend (earlier
        variables may be referenced in the metric selector); a query
        variable without a value adopts its first option. Failures are
        logged per variable and never fail the dashboard.
        """
        dashboard = self._dashboard
        if dashboard is None:
            return
        generation = self._generation
        values = dict(self._variable_values)
        options: dict[str, tuple[str, ...]] = {}

        for variable in dashboard.variables:
            if variable.type is VariableType.CUSTOM and variable.options:
                options[variable.name] = variable.options
                continue
            if variable.type is not VariableType.QUERY or not variable.query:
                continue

            parsed = parse_label_values_query(variable.query)
            if parsed is None:
                logger.debug("variable_query_not_resolvable", variable=variable.name, query=variable.query)
                continue

            metric = substitute_variables(parsed.metric, values) if parsed.metric else None
            try:
                label_values = await self._client.get_label_values(parsed.label, metric)
            except PromboardError as e:
                logger.warning("variable_options_failed", variable=variable.name, error=e.message)
                continue

            options[variable.name] = tuple(label_values)
            if not values.get(variable.name) and label_values:
                values[variable.name] = label_values[0]

        if generation != self._generation:
            logger.info("variable_options_discarded", reason="dashboard_changed")
            return

        adopted = {
            name: value
            for name, value in values.items()
            if value and not self._variable_values.get(name)
        }
        if adopted:
            self._variable_values.update(adopted)
            self._values_version += 1
        self._commit(
            variable_options=_frozen(options),
            variable_values=_frozen(self._variable_values),
        )

    # === Variables ===

    async def set_variable_value(self, name: str, value: str) -> None:
        """Set a variable and refresh every panel."""
        if name not in self._variable_values:
            logger.warning("unknown_variable", variable=name)
            return
        self._variable_values[name] = value
        self._values_version += 1
        self._commit(variable_values=_frozen(self._variable_values))
        await self.refresh()

    # === Refresh ===

    async def refresh(self) -> bool:
        """
        Re-run every panel's queries and publish one consolidated snapshot.

        Returns:
            True if the cycle was published, False if skipped or discarded
        """
        if self._dashboard is None or self._state.status in (
            CoordinatorStatus.IDLE,
            CoordinatorStatus.LOADING,
        ):
            logger.debug("refresh_skipped", status=self._state.status.value)
            return False

        tag = (self._generation, self._values_version)
        if self._in_flight == tag:
            logger.debug("refresh_skipped", reason="in_flight")
            return False
        self._in_flight = tag

        try:
            values = dict(self._variable_values)
            now = self._clock()
            panels = await asyncio.gather(
                *(self._refresh_panel(panel_data, values, now) for panel_data in self._state.panels)
            )

            if tag != (self._generation, self._values_version):
                logger.info("refresh_discarded", reason="stale")
                return False

            for panel_data in panels:
                if panel_data.error is None:
                    self._record_history(panel_data)

            failed = sum(1 for p in panels if p.error is not None)
            logger.debug("refresh_complete", panels=len(panels), failed_panels=failed)
            self._commit(panels=tuple(panels), last_refresh=now)
            return True
        finally:
            if self._in_flight == tag:
                self._in_flight = None

    async def _refresh_panel(
        self,
        panel_data: PanelData,
        values: Mapping[str, str],
        now: float,
    ) -> PanelData:
        panel = panel_data.panel
        try:
            queries = [
                replace(query, expr=substitute_variables(query.expr, values))
                for query in panel.queries
            ]
            results = await self._client.execute_queries(queries, self._time_range)
        except Exception as e:
            error = PanelFetchError(panel.id, str(e) or type(e).__name__)
            logger.warning("panel_refresh_failed", panel_id=panel.id, error=error.message)
            # keep the last good results on screen
            return replace(panel_data, error=error.message)

        return PanelData(panel=panel, results=tuple(results), last_updated=now, error=None)

    def _record_history(self, panel_data: PanelData) -> None:
        for result in panel_data.results:
            for series in result.series:
                last = series.last_sample()
                if last is None or math.isnan(last.value):
                    continue
                self._history_buffer((panel_data.panel.id, result.ref_id)).push(
                    last.value, last.timestamp
                )

    # === Timer ===

    @property
    def is_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        """Start periodic refresh; no-op if already running. Needs a running loop."""
        if self.is_running:
            return
        self._timer = asyncio.get_running_loop().create_task(self._run_timer())
        logger.info("refresh_timer_started", interval=self._refresh_interval)

    def stop(self) -> None:
        """Cancel periodic refresh; safe to call when not running.

        Refresh cycles already in flight are left to finish.
        """
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None
        logger.info("refresh_timer_stopped")

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self._refresh_interval)
            self._schedule_refresh()

    def _schedule_refresh(self) -> None:
        if self._in_flight is not None:
            logger.debug("refresh_tick_skipped", reason="in_flight")
            return
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_done)

    def _refresh_done(self, task: asyncio.Task[Any]) -> None:
        self._refresh_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("refresh_failed", error=str(task.exception()))

    async def aclose(self) -> None:
        """Stop the timer and wait for refresh cycles still in flight."""
        self.stop()
        if self._refresh_tasks:
            await asyncio.gather(*self._refresh_tasks, return_exceptions=True)
