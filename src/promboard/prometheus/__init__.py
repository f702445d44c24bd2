"""Prometheus HTTP API access and time-range policy."""

from promboard.prometheus.client import PrometheusClient, RetryableQueryError
from promboard.prometheus.models import (
    PrometheusResponse,
    QueryResult,
    Sample,
    TimeRange,
    TimeSeries,
)
from promboard.prometheus.time_range import (
    calculate_step,
    create_time_range,
    format_duration,
    parse_duration,
)

__all__ = [
    "PrometheusClient",
    "RetryableQueryError",
    "PrometheusResponse",
    "QueryResult",
    "Sample",
    "TimeRange",
    "TimeSeries",
    "calculate_step",
    "create_time_range",
    "format_duration",
    "parse_duration",
]
