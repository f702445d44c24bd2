"""
CLI commands for inspecting dashboard definitions.

- parse: show what a dashboard normalizes to, and what was skipped
- list: show the dashboards available in a directory
"""

from __future__ import annotations

import argparse
import json
from typing import Optional

from promboard.cli.ux import console, header, info, print_table, success, warning
from promboard.config import load_config
from promboard.core.errors import ExitCode, main_with_error_handling
from promboard.dashboards import list_dashboards, load_dashboard_file
from promboard.dashboards.variables import default_variable_values


@main_with_error_handling()
def parse_command(
    dashboard_file: str,
    output_format: str = "table",
    strict: bool = False,
) -> int:
    """
    Normalize a dashboard file and report panels, variables and warnings.

    Exit codes:
        0 = Parsed cleanly
        1 = Parsed with warnings and --strict given
        12 = Dashboard definition error
    """
    result = load_dashboard_file(dashboard_file)
    dashboard = result.dashboard

    if output_format == "json":
        console.print_json(json.dumps(result.to_dict()))
        return ExitCode.WARNING if strict and result.warnings else ExitCode.SUCCESS

    header(f"Dashboard: {dashboard.title}")

    print_table(
        "Panels",
        ["ID", "Title", "Type", "Position", "Queries"],
        [
            [
                str(panel.id),
                panel.title,
                panel.type.value,
                f"{panel.grid_pos.y},{panel.grid_pos.x}",
                "\n".join(f"{q.ref_id}: {q.expr}" for q in panel.queries),
            ]
            for panel in dashboard.panels
        ],
    )

    if dashboard.variables:
        defaults = default_variable_values(dashboard.variables)
        print_table(
            "Variables",
            ["Name", "Type", "Query", "Default"],
            [
                [v.name, v.type.value, v.query or "", defaults.get(v.name, "")]
                for v in dashboard.variables
            ],
        )

    if result.warnings:
        console.print()
        for message in result.warnings:
            warning(message)
        if strict:
            return ExitCode.WARNING
    else:
        success(f"{len(dashboard.panels)} panels ready")

    return ExitCode.SUCCESS


@main_with_error_handling()
def list_command(directory: Optional[str] = None, config_path: Optional[str] = None) -> int:
    """List dashboard files in ``directory`` (default: configured directory)."""
    directory = directory or load_config(config_path).dashboard_directory
    entries = list_dashboards(directory)

    if not entries:
        info(f"No dashboards found in {directory}")
        return ExitCode.SUCCESS

    print_table(
        f"Dashboards in {directory}",
        ["Title", "Path"],
        [[entry.title, str(entry.path)] for entry in entries],
    )
    return ExitCode.SUCCESS


def register_dashboard_parsers(subparsers: argparse._SubParsersAction) -> None:
    """Register parse and list subcommand parsers."""
    parse_parser = subparsers.add_parser(
        "parse",
        help="Normalize a dashboard file and show skipped features",
    )
    parse_parser.add_argument("dashboard_file", help="Path to Grafana dashboard JSON")
    parse_parser.add_argument(
        "--format",
        dest="output_format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )
    parse_parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit 1 if any warnings were produced",
    )

    list_parser = subparsers.add_parser("list", help="List dashboards in a directory")
    list_parser.add_argument("directory", nargs="?", help="Directory to scan")


def handle_parse_command(args: argparse.Namespace) -> int:
    return parse_command(
        dashboard_file=args.dashboard_file,
        output_format=getattr(args, "output_format", "table"),
        strict=getattr(args, "strict", False),
    )


def handle_list_command(args: argparse.Namespace) -> int:
    return list_command(
        directory=getattr(args, "directory", None),
        config_path=getattr(args, "config", None),
    )
