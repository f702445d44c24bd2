"""
CLI commands that talk to the Prometheus backend.

- check: health probe against the configured server
- query: run one range query and summarize the returned series
"""

from __future__ import annotations

import argparse
import asyncio
import math
from typing import Optional

from promboard.cli.ux import console, error, print_table, spinner, success, warning
from promboard.config import Settings, load_config
from promboard.core.errors import ConnectivityError, ExitCode, main_with_error_handling
from promboard.dashboards.models import NormalizedQuery
from promboard.prometheus import PrometheusClient, format_duration, parse_duration


def _client(settings: Settings, prometheus_url: Optional[str]) -> PrometheusClient:
    if prometheus_url:
        settings = settings.model_copy(update={"prometheus_url": prometheus_url})
    return PrometheusClient.from_settings(settings)


def format_value(value: float) -> str:
    """Compact display of a sample value."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    for limit, suffix in ((1e12, "T"), (1e9, "G"), (1e6, "M"), (1e3, "K")):
        if abs(value) >= limit:
            return f"{value / limit:.1f}{suffix}"
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"


@main_with_error_handling()
def check_command(
    prometheus_url: Optional[str] = None,
    config_path: Optional[str] = None,
) -> int:
    """
    Probe the backend.

    Exit codes:
        0 = Reachable
        11 = Unreachable
    """
    client = _client(load_config(config_path), prometheus_url)

    with spinner(f"Checking {client.base_url}..."):
        healthy = asyncio.run(client.health_check())

    if not healthy:
        raise ConnectivityError(f"Cannot reach Prometheus at {client.base_url}")

    success(f"Prometheus reachable at {client.base_url}")
    return ExitCode.SUCCESS


@main_with_error_handling()
def query_command(
    expr: str,
    time_range: Optional[str] = None,
    legend_format: Optional[str] = None,
    prometheus_url: Optional[str] = None,
    config_path: Optional[str] = None,
) -> int:
    """Run a range query and print one row per returned series."""
    settings = load_config(config_path)
    client = _client(settings, prometheus_url)
    duration = time_range or settings.time_range
    parse_duration(duration)

    query = NormalizedQuery(expr=expr, ref_id="A", legend_format=legend_format)
    (result,) = asyncio.run(client.execute_queries([query], duration))

    if result.error:
        error(result.error)
        return ExitCode.PROVIDER_ERROR

    if not result.series:
        warning("Query returned no series")
        return ExitCode.SUCCESS

    rows = []
    for series in result.series:
        last = series.last_sample()
        rows.append(
            [
                series.display_name(),
                format_value(last.value) if last else "-",
                str(len(series.samples)),
            ]
        )
    print_table(f"{expr} (last {format_duration(duration)})", ["Series", "Last", "Samples"], rows)
    console.print(f"[muted]{len(result.series)} series[/muted]")
    return ExitCode.SUCCESS


def register_query_parsers(subparsers: argparse._SubParsersAction) -> None:
    """Register check and query subcommand parsers."""
    check_parser = subparsers.add_parser("check", help="Check that Prometheus is reachable")
    check_parser.add_argument("--prometheus-url", "-p", help="Override the configured Prometheus URL")

    query_parser = subparsers.add_parser("query", help="Run a PromQL range query")
    query_parser.add_argument("expr", help="PromQL expression")
    query_parser.add_argument("--range", dest="time_range", help="Duration, e.g. 5m, 1h, 7d")
    query_parser.add_argument("--legend", dest="legend_format", help="Legend format, e.g. {{instance}}")
    query_parser.add_argument("--prometheus-url", "-p", help="Override the configured Prometheus URL")


def handle_check_command(args: argparse.Namespace) -> int:
    return check_command(
        prometheus_url=getattr(args, "prometheus_url", None),
        config_path=getattr(args, "config", None),
    )


def handle_query_command(args: argparse.Namespace) -> int:
    return query_command(
        expr=args.expr,
        time_range=getattr(args, "time_range", None),
        legend_format=getattr(args, "legend_format", None),
        prometheus_url=getattr(args, "prometheus_url", None),
        config_path=getattr(args, "config", None),
    )
