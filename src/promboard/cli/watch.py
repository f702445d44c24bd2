"""
CLI command that runs the refresh loop and prints each published snapshot.

This is a plain table view of the coordinator's state, useful for checking
a dashboard against a live backend from a terminal or CI job.
"""

from __future__ import annotations

import argparse
import asyncio
import math
from typing import Optional

from rich.markup import escape
from rich.table import Table

from promboard.cli.query import format_value
from promboard.cli.ux import console, error, info, is_interactive, select, warning
from promboard.config import Settings, load_config
from promboard.core.errors import ConfigurationError, ExitCode, main_with_error_handling
from promboard.dashboards import list_dashboards, threshold_color
from promboard.dashboards.models import PanelType
from promboard.store import CoordinatorStatus, DashboardCoordinator, DashboardState, Trend

TREND_ARROWS = {Trend.UP: "[green]▲[/green]", Trend.DOWN: "[red]▼[/red]", Trend.STABLE: "─"}


def render_state(state: DashboardState, coordinator: DashboardCoordinator) -> Table:
    """One row per panel query: latest value, trend and status."""
    table = Table(title=escape(state.title), caption=_variables_caption(state))
    table.add_column("Panel")
    table.add_column("Type")
    table.add_column("Query")
    table.add_column("Series", justify="right")
    table.add_column("Last", justify="right")
    table.add_column("Trend")
    table.add_column("Status")

    for panel_data in state.panels:
        panel = panel_data.panel
        if not panel_data.results:
            status = f"[error]{escape(panel_data.error)}[/error]" if panel_data.error else "[muted]pending[/muted]"
            table.add_row(escape(panel.title), panel.type.value, "", "", "", "", status)
            continue

        for result in panel_data.results:
            status = "[success]ok[/success]"
            if result.error:
                status = f"[error]{escape(result.error)}[/error]"
            elif panel_data.error:
                status = f"[warning]stale: {escape(panel_data.error)}[/warning]"

            last_text = ""
            if result.series:
                last = result.series[0].last_sample()
                if last is not None:
                    last_text = format_value(last.value)
                    if panel.type is PanelType.STAT and panel.thresholds and not math.isnan(last.value):
                        last_text = f"[{threshold_color(last.value, panel.thresholds)}]{last_text}[/]"

            table.add_row(
                escape(panel.title),
                panel.type.value,
                result.ref_id,
                str(len(result.series)),
                last_text,
                TREND_ARROWS[coordinator.trend(panel.id, result.ref_id)],
                status,
            )
    return table


def _variables_caption(state: DashboardState) -> str | None:
    if not state.variable_values:
        return None
    return "  ".join(f"${name}={escape(value)}" for name, value in state.variable_values.items())


def _pick_dashboard(settings: Settings) -> Optional[str]:
    entries = list_dashboards(settings.dashboard_directory)
    if not entries or not is_interactive():
        return None
    choice = select(
        "Select a dashboard",
        [f"{entry.title} ({entry.path})" for entry in entries],
    )
    if choice is None:
        return None
    for entry in entries:
        if choice == f"{entry.title} ({entry.path})":
            return str(entry.path)
    return None


async def _watch(coordinator: DashboardCoordinator, cycles: int, variables: dict[str, str]) -> int:
    done = asyncio.Event()
    published = 0
    last_seen = 0.0

    def on_state(state: DashboardState) -> None:
        nonlocal published, last_seen
        if state.last_refresh and state.last_refresh != last_seen:
            last_seen = state.last_refresh
            published += 1
            console.print(render_state(state, coordinator))
            if cycles and published >= cycles:
                done.set()

    unsubscribe = coordinator.subscribe(on_state)
    try:
        if not await coordinator.load_dashboard():
            error(coordinator.state.error or "Failed to load dashboard")
            return ExitCode.DEFINITION_ERROR

        for message in coordinator.state.warnings:
            warning(message)
        for name, value in variables.items():
            await coordinator.set_variable_value(name, value)

        if not (cycles and published >= cycles):
            coordinator.start()
            await done.wait()
    finally:
        unsubscribe()
        await coordinator.aclose()

    if coordinator.state.status is CoordinatorStatus.FAILED:
        return ExitCode.DEFINITION_ERROR
    return ExitCode.SUCCESS


def _parse_variables(pairs: list[str]) -> dict[str, str]:
    variables: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise ConfigurationError(f"Expected NAME=VALUE, got {pair!r}")
        variables[name] = value
    return variables


@main_with_error_handling()
def watch_command(
    dashboard_file: Optional[str] = None,
    interval: Optional[float] = None,
    time_range: Optional[str] = None,
    cycles: int = 0,
    variables: Optional[list[str]] = None,
    config_path: Optional[str] = None,
) -> int:
    """
    Load a dashboard and print a table on every refresh.

    Runs until interrupted, or for ``cycles`` refreshes when given.
    """
    settings = load_config(config_path)
    overrides: dict[str, object] = {}
    if interval:
        overrides["refresh_interval"] = interval
    if time_range:
        overrides["time_range"] = time_range

    path = dashboard_file or _pick_dashboard(settings) or settings.dashboard_path
    overrides["dashboard_path"] = path
    settings = settings.model_copy(update=overrides)

    info(f"Watching {path} every {settings.refresh_interval}s (range {settings.time_range})")
    coordinator = DashboardCoordinator.from_settings(settings)
    return asyncio.run(_watch(coordinator, cycles, _parse_variables(variables or [])))


def register_watch_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register watch subcommand parser."""
    parser = subparsers.add_parser("watch", help="Refresh a dashboard periodically and print its panels")
    parser.add_argument("dashboard_file", nargs="?", help="Path to Grafana dashboard JSON")
    parser.add_argument("--interval", type=float, help="Refresh interval in seconds")
    parser.add_argument("--range", dest="time_range", help="Query time range, e.g. 5m")
    parser.add_argument("--cycles", type=int, default=0, help="Stop after N refreshes (0 = run until Ctrl-C)")
    parser.add_argument(
        "--var",
        dest="variables",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Set a template variable (repeatable)",
    )


def handle_watch_command(args: argparse.Namespace) -> int:
    return watch_command(
        dashboard_file=getattr(args, "dashboard_file", None),
        interval=getattr(args, "interval", None),
        time_range=getattr(args, "time_range", None),
        cycles=getattr(args, "cycles", 0),
        variables=getattr(args, "variables", None),
        config_path=getattr(args, "config", None),
    )
