"""
Prometheus HTTP API models.

The response envelope is validated with pydantic; query results handed to
the rest of the application are plain dataclasses.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, Field


class PrometheusResponse(BaseModel):
    """The {status, data, error, errorType, warnings} envelope."""

    status: str = Field(..., description="success or error")
    data: Optional[Any] = Field(None, description="Payload; shape depends on the endpoint")
    error: Optional[str] = Field(None, description="Error text when status is error")
    error_type: Optional[str] = Field(None, alias="errorType")
    warnings: list[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @property
    def is_success(self) -> bool:
        return self.status == "success"


class QueryData(BaseModel):
    """data section of /query and /query_range responses."""

    result_type: str = Field(..., alias="resultType")
    result: list[Any] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "extra": "ignore"}


class InstantVector(BaseModel):
    """One element of a vector result."""

    metric: dict[str, str] = Field(default_factory=dict)
    value: tuple[float, Any]


class RangeVector(BaseModel):
    """One element of a matrix result."""

    metric: dict[str, str] = Field(default_factory=dict)
    values: list[tuple[float, Any]] = Field(default_factory=list)


def parse_sample_value(text: Any) -> float:
    """Parse Prometheus value text; anything non-numeric becomes NaN."""
    try:
        return float(text)
    except (TypeError, ValueError):
        return math.nan


@dataclass(frozen=True)
class Sample:
    """A single (timestamp, value) point; timestamp in unix seconds."""

    timestamp: float
    value: float


@dataclass(frozen=True)
class TimeRange:
    """Query window in unix seconds with step in seconds."""

    start: int
    end: int
    step: int


@dataclass(frozen=True)
class TimeSeries:
    """One labeled series returned for a query."""

    labels: dict[str, str]
    samples: tuple[Sample, ...] = ()
    legend_format: str | None = None

    def last_sample(self) -> Sample | None:
        return self.samples[-1] if self.samples else None

    def display_name(self) -> str:
        """Legend text: legendFormat with {{label}} filled in, else the labels."""
        if self.legend_format:
            legend = self.legend_format
            for key, value in self.labels.items():
                legend = legend.replace("{{" + key + "}}", value)
            return legend

        if "__name__" in self.labels:
            return self.labels["__name__"]

        parts = [f'{k}="{v}"' for k, v in self.labels.items() if k != "__name__"]
        return ", ".join(parts) or "value"


@dataclass(frozen=True)
class QueryResult:
    """Outcome of one query; error is set (and series empty) on failure."""

    ref_id: str
    series: tuple[TimeSeries, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
