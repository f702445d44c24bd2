"""
Fixed-capacity sample history.

One HistoryBuffer is kept per (panel id, refId) key and holds the latest
sample of each refresh cycle, for short-term trend display.
"""

from __future__ import annotations

import math
from enum import Enum

from promboard.prometheus.models import Sample

DEFAULT_CAPACITY = 60
TREND_WINDOW = 5
TREND_THRESHOLD = 0.01


class HistoryBuffer:
    """Circular buffer of samples; once full the oldest sample is overwritten."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._samples: list[Sample | None] = [None] * capacity
        self._head = 0
        self._count = 0

    def push(self, value: float, timestamp: float) -> None:
        """Append a sample, evicting the oldest when full. O(1)."""
        self._samples[self._head] = Sample(timestamp=timestamp, value=value)
        self._head = (self._head + 1) % self.capacity
        if self._count < self.capacity:
            self._count += 1

    def get_all(self) -> list[Sample]:
        """All samples, oldest first."""
        if self._count == 0:
            return []
        start = 0 if self._count < self.capacity else self._head
        return [
            self._samples[(start + i) % self.capacity]  # type: ignore[misc]
            for i in range(self._count)
        ]

    def get_recent(self, n: int) -> list[Sample]:
        """The ``n`` most recent samples, oldest first."""
        if n <= 0:
            return []
        return self.get_all()[-n:]

    def values(self, n: int | None = None) -> list[float]:
        samples = self.get_recent(n) if n else self.get_all()
        return [s.value for s in samples]

    def latest(self) -> Sample | None:
        """Most recent sample, or None when empty."""
        if self._count == 0:
            return None
        return self._samples[(self._head - 1) % self.capacity]

    def size(self) -> int:
        return self._count

    def __len__(self) -> int:
        return self._count

    def clear(self) -> None:
        self._samples = [None] * self.capacity
        self._head = 0
        self._count = 0


class Trend(str, Enum):
    """Short-term direction of a series."""

    UP = "up"
    DOWN = "down"
    STABLE = "stable"


def calculate_trend(
    buffer: HistoryBuffer | None,
    window: int = TREND_WINDOW,
    threshold: float = TREND_THRESHOLD,
) -> Trend:
    """
    Compare the oldest and newest of the last ``window`` samples.

    A change within ``threshold`` (relative to the oldest value) is STABLE,
    as is anything with fewer than two finite samples.
    """
    if buffer is None:
        return Trend.STABLE

    values = [v for v in buffer.values(window) if not math.isnan(v)]
    if len(values) < 2:
        return Trend.STABLE

    first, last = values[0], values[-1]
    change = last - first
    limit = abs(first) * threshold
    if change > limit:
        return Trend.UP
    if change < -limit:
        return Trend.DOWN
    return Trend.STABLE
