"""Discovery of dashboard files available for switching."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class DashboardEntry:
    """A dashboard file and the title to show for it."""

    path: Path
    title: str


def list_dashboards(directory: str | Path) -> list[DashboardEntry]:
    """
    Scan a directory for *.json dashboard files.

    Files that cannot be read or decoded are still listed, titled by their
    file name, so that selecting one surfaces the real load error.
    """
    root = Path(directory)
    if not root.is_dir():
        logger.debug("dashboard_directory_missing", directory=str(root))
        return []

    entries: list[DashboardEntry] = []
    for path in root.glob("*.json"):
        title = path.stem
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.debug("dashboard_title_unreadable", path=str(path), error=str(e))
        else:
            if isinstance(document, dict) and isinstance(document.get("title"), str) and document["title"]:
                title = document["title"]
        entries.append(DashboardEntry(path=path, title=title))

    return sorted(entries, key=lambda e: (e.title.lower(), str(e.path)))
