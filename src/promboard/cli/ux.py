"""
CLI UX utilities built on rich, with questionary for interactive prompts.

Environment handling:
- Automatically detects TTY vs pipe/CI
- Respects NO_COLOR and FORCE_COLOR environment variables
- Falls back to plain text in non-interactive environments
"""

from __future__ import annotations

import os
import sys
from contextlib import contextmanager
from typing import Iterator

import questionary
from questionary import Style as QStyle
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.theme import Theme

# Nord color palette (https://www.nordtheme.com/)
PROMBOARD_THEME = Theme(
    {
        "info": "#88C0D0",  # Nord frost - light blue
        "success": "#A3BE8C",  # Nord aurora - green
        "warning": "#EBCB8B",  # Nord aurora - yellow
        "error": "#BF616A bold",  # Nord aurora - red
        "highlight": "#B48EAD",  # Nord aurora - purple
        "muted": "#D8DEE9",  # Nord snow storm - light grey
        "frost": "#81A1C1",  # Nord frost - blue
    }
)


def _is_interactive() -> bool:
    """Check if we're in an interactive terminal environment."""
    ci_vars = ["CI", "GITHUB_ACTIONS", "JENKINS_URL", "GITLAB_CI", "CIRCLECI", "TRAVIS"]
    if any(os.environ.get(var) for var in ci_vars):
        return False
    return sys.stdout.isatty()


console = Console(
    theme=PROMBOARD_THEME,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
)

PROMPT_STYLE = QStyle(
    [
        ("qmark", "fg:#88C0D0 bold"),
        ("question", "bold"),
        ("answer", "fg:#A3BE8C"),
        ("pointer", "fg:#88C0D0 bold"),
        ("highlighted", "fg:#81A1C1 bold"),
        ("selected", "fg:#A3BE8C"),
    ]
)


@contextmanager
def spinner(message: str) -> Iterator[None]:
    """Show a spinner while work is in progress."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(description=message, total=None)
        yield


# === Output Formatting ===


def success(message: str) -> None:
    console.print(f"[success]✓ {escape(message)}[/success]")


def error(message: str) -> None:
    console.print(f"[error]✗ {escape(message)}[/error]")


def warning(message: str) -> None:
    console.print(f"[warning]⚠ {escape(message)}[/warning]")


def info(message: str) -> None:
    console.print(f"[info]ℹ {escape(message)}[/info]")


def header(title: str) -> None:
    """Print a section header."""
    console.print()
    console.print(Panel(f"[bold]{escape(title)}[/bold]", border_style="cyan"))


def print_table(
    title: str,
    columns: list[str],
    rows: list[list[str]],
    show_header: bool = True,
) -> None:
    """Print a formatted table; cell text is printed literally."""
    table = Table(title=escape(title), show_header=show_header)

    for col in columns:
        table.add_column(col)

    for row in rows:
        table.add_row(*(escape(cell) for cell in row))

    console.print(table)


# === Interactive Prompts ===


def select(message: str, choices: list[str], default: str | None = None) -> str | None:
    """Select from a list of choices; None if the prompt was aborted."""
    return questionary.select(
        message,
        choices=choices,
        default=default,
        style=PROMPT_STYLE,
    ).ask()


def is_interactive() -> bool:
    """Public function to check if running interactively."""
    return _is_interactive()
