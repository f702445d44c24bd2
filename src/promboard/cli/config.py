"""CLI commands for promboard configuration."""

from __future__ import annotations

import argparse
from typing import Optional

from promboard.cli.ux import console, info, print_table, success
from promboard.config import load_config, write_example_config
from promboard.config.loader import CONFIG_FILENAME
from promboard.core.errors import ExitCode, main_with_error_handling


@main_with_error_handling()
def init_config_command(path: Optional[str] = None) -> int:
    """Write an example config file if none exists."""
    target = path or CONFIG_FILENAME
    if write_example_config(target):
        success(f"Created {target} with defaults")
    else:
        info(f"{target} already exists, leaving it unchanged")
    return ExitCode.SUCCESS


@main_with_error_handling()
def show_config_command(config_path: Optional[str] = None) -> int:
    """Print the effective settings (passwords masked)."""
    settings = load_config(config_path)
    rows = []
    for name, value in settings.model_dump().items():
        if "password" in name and value:
            value = "********"
        rows.append([name, "" if value is None else str(value)])
    print_table("Effective configuration", ["Setting", "Value"], rows)
    console.print("[muted]Environment variables use the PROMBOARD_ prefix[/muted]")
    return ExitCode.SUCCESS


def register_config_parsers(subparsers: argparse._SubParsersAction) -> None:
    init_parser = subparsers.add_parser("init-config", help="Write an example promboard.yaml")
    init_parser.add_argument("path", nargs="?", help=f"Target file (default: {CONFIG_FILENAME})")

    subparsers.add_parser("show-config", help="Show the effective configuration")


def handle_init_config_command(args: argparse.Namespace) -> int:
    return init_config_command(getattr(args, "path", None))


def handle_show_config_command(args: argparse.Namespace) -> int:
    return show_config_command(getattr(args, "config", None))
