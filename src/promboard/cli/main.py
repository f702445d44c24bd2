"""promboard command line entry point."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, Sequence

from promboard import __version__
from promboard.cli.config import (
    handle_init_config_command,
    handle_show_config_command,
    register_config_parsers,
)
from promboard.cli.dashboard import (
    handle_list_command,
    handle_parse_command,
    register_dashboard_parsers,
)
from promboard.cli.query import (
    handle_check_command,
    handle_query_command,
    register_query_parsers,
)
from promboard.cli.watch import handle_watch_command, register_watch_parser
from promboard.logging import configure_logging

HANDLERS: dict[str, Callable[[argparse.Namespace], int]] = {
    "parse": handle_parse_command,
    "list": handle_list_command,
    "check": handle_check_command,
    "query": handle_query_command,
    "watch": handle_watch_command,
    "init-config": handle_init_config_command,
    "show-config": handle_show_config_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="promboard",
        description="Render Grafana dashboards against a Prometheus backend",
    )
    parser.add_argument("--version", action="version", version=f"promboard {__version__}")
    parser.add_argument("--config", "-c", help="Path to promboard.yaml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    register_dashboard_parsers(subparsers)
    register_query_parsers(subparsers)
    register_watch_parser(subparsers)
    register_config_parsers(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(logging.DEBUG if args.verbose else logging.WARNING, json=False)

    handler = HANDLERS.get(args.command or "")
    if handler is None:
        parser.print_help()
        sys.exit(0)

    sys.exit(handler(args))


if __name__ == "__main__":
    main()
