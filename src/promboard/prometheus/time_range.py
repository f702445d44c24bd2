"""
Time-range and step policy for range queries.

A duration such as "5m" becomes a window ending now. The step aims for
about TARGET_POINTS points across the window and is then snapped to a fixed
ladder of resolutions so that response size stays bounded however wide the
window is.
"""

from __future__ import annotations

import math
import re
import time

from promboard.core.errors import DurationFormatError
from promboard.prometheus.models import TimeRange

DURATION_PATTERN = re.compile(r"^(\d+)(s|m|h|d)$")

UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}

TARGET_POINTS = 60

# 15s, 30s, 1m, 5m, 15m, 1h; whole hours beyond that
STEP_LADDER = (15, 30, 60, 300, 900, 3600)
HOUR = 3600


def parse_duration(duration: str) -> int:
    """
    Parse a duration string into seconds.

    Supports: 30s, 5m, 1h, 24h, 7d

    Raises:
        DurationFormatError: If the text is not <digits><s|m|h|d>
    """
    match = DURATION_PATTERN.match(duration.strip()) if isinstance(duration, str) else None
    if not match:
        raise DurationFormatError(f"Invalid duration format: {duration!r}", {"duration": duration})
    return int(match.group(1)) * UNIT_SECONDS[match.group(2)]


def snap_step(raw_step: float) -> int:
    """
    Snap a raw step to the resolution ladder.

    Below the top rung the closest rung wins (ties go to the coarser one)
    and nothing finer than the first rung is ever returned. Above the top
    rung the step rounds to whole hours.
    """
    if raw_step <= STEP_LADDER[0]:
        return STEP_LADDER[0]
    if raw_step <= STEP_LADDER[-1]:
        return min(STEP_LADDER, key=lambda rung: (abs(rung - raw_step), -rung))
    return max(1, math.floor(raw_step / HOUR + 0.5)) * HOUR


def calculate_step(range_seconds: int) -> int:
    """Step in seconds for a window of ``range_seconds``."""
    return snap_step(math.ceil(range_seconds / TARGET_POINTS))


def create_time_range(duration: str, now: float | None = None) -> TimeRange:
    """Create the window [now - duration, now] with its step."""
    end = int(now if now is not None else time.time())
    range_seconds = parse_duration(duration)
    return TimeRange(start=end - range_seconds, end=end, step=calculate_step(range_seconds))


def format_duration(duration: str) -> str:
    """Render a duration in its largest whole unit, e.g. 90s -> 1m."""
    seconds = parse_duration(duration)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"
