"""
Prometheus HTTP API client.

Executes instant and range queries plus the label/series discovery calls
used to populate template variables. Every call carries its own timeout;
failures surface as QueryError with the backend's error text.
"""

from __future__ import annotations

import asyncio
from typing import Any, Sequence
from urllib.parse import quote

import httpx
import structlog
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from promboard import __version__
from promboard.core.errors import PromboardError, QueryError
from promboard.dashboards.models import NormalizedQuery
from promboard.prometheus.models import (
    InstantVector,
    PrometheusResponse,
    QueryData,
    QueryResult,
    RangeVector,
    Sample,
    TimeRange,
    TimeSeries,
    parse_sample_value,
)
from promboard.prometheus.time_range import create_time_range

logger = structlog.get_logger()

DEFAULT_USER_AGENT = f"promboard/{__version__}"
DEFAULT_TIMEOUT = 10.0
HEALTH_CHECK_TIMEOUT = 5.0


class RetryableQueryError(QueryError):
    """Transport failures and 408/429/5xx responses that may succeed on retry."""


def is_retryable_status(status_code: int) -> bool:
    """Determine if HTTP status code is retryable."""
    return status_code in (408, 429, 500, 502, 503, 504)


class PrometheusClient:
    """Async client for the Prometheus HTTP API."""

    def __init__(
        self,
        url: str,
        *,
        username: str | None = None,
        password: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = 0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._base_url = url.rstrip("/")
        self._auth = (username, password) if username and password else None
        self._timeout = timeout
        self._max_retries = max_retries
        self._user_agent = user_agent

    @classmethod
    def from_settings(cls, settings: Any) -> "PrometheusClient":
        """Build a client from promboard Settings."""
        return cls(
            settings.prometheus_url,
            username=settings.prometheus_username,
            password=settings.prometheus_password,
            timeout=settings.prometheus_timeout,
            max_retries=settings.http_max_retries,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> dict[str, str]:
        return {"Accept": "application/json", "User-Agent": self._user_agent}

    async def instant_query(self, expr: str, time: float | None = None) -> PrometheusResponse:
        """
        Execute an instant query.

        Args:
            expr: PromQL expression
            time: Evaluation time in unix seconds (defaults to now)
        """
        params: dict[str, Any] = {"query": expr}
        if time is not None:
            params["time"] = time
        return await self._request("/api/v1/query", params=params)

    async def range_query(self, expr: str, time_range: TimeRange) -> PrometheusResponse:
        """Execute a range query over ``time_range``."""
        params = {
            "query": expr,
            "start": time_range.start,
            "end": time_range.end,
            "step": f"{time_range.step}s",
        }
        return await self._request("/api/v1/query_range", params=params)

    async def query_time_series(
        self,
        expr: str,
        duration: str,
        legend_format: str | None = None,
    ) -> list[TimeSeries]:
        """
        Run a range query over the last ``duration`` and return its series.

        Non-numeric sample text becomes NaN; it is not filtered here.
        """
        time_range = create_time_range(duration)
        response = await self.range_query(expr, time_range)
        data = _query_data(response)

        series: list[TimeSeries] = []
        for raw in data.result:
            try:
                vector = RangeVector.model_validate(raw)
            except ValidationError as e:
                raise QueryError("Malformed range query result", {"errors": e.error_count()}) from e
            samples = tuple(
                Sample(timestamp=timestamp, value=parse_sample_value(value))
                for timestamp, value in vector.values
            )
            series.append(TimeSeries(labels=vector.metric, samples=samples, legend_format=legend_format))
        return series

    async def query_instant(self, expr: str) -> float | None:
        """Current value of the first result of ``expr``, or None if empty."""
        response = await self.instant_query(expr)
        data = _query_data(response)
        if not data.result:
            return None

        first = data.result[0]
        if data.result_type == "scalar" and isinstance(first, (int, float)):
            # scalar results are a bare [timestamp, value] pair
            return parse_sample_value(data.result[1]) if len(data.result) > 1 else None
        try:
            vector = InstantVector.model_validate(first)
        except ValidationError as e:
            raise QueryError("Malformed instant query result", {"errors": e.error_count()}) from e
        return parse_sample_value(vector.value[1])

    async def execute_queries(
        self,
        queries: Sequence[NormalizedQuery],
        duration: str,
    ) -> list[QueryResult]:
        """
        Run a panel's queries concurrently, isolating failures per query.

        A failed query yields a QueryResult with no series and its error
        text; the batch itself does not raise for query failures.
        """
        return list(await asyncio.gather(*(self._execute_one(q, duration) for q in queries)))

    async def _execute_one(self, query: NormalizedQuery, duration: str) -> QueryResult:
        try:
            series = await self.query_time_series(query.expr, duration, query.legend_format)
        except PromboardError as e:
            logger.debug("query_failed", ref_id=query.ref_id, expr=query.expr, error=e.message)
            return QueryResult(ref_id=query.ref_id, series=(), error=e.message)
        return QueryResult(ref_id=query.ref_id, series=tuple(series))

    async def get_label_values(self, label: str, metric: str | None = None) -> list[str]:
        """
        Values of ``label``, optionally restricted to series matching ``metric``.
        """
        params = {"match[]": metric} if metric else None
        response = await self._request(f"/api/v1/label/{quote(label, safe='')}/values", params=params)
        if not isinstance(response.data, list):
            raise QueryError("Malformed label values response", {"label": label})
        return [str(value) for value in response.data]

    async def get_series(self, selector: str) -> list[dict[str, str]]:
        """Label sets of all series matching ``selector``."""
        response = await self._request("/api/v1/series", params={"match[]": selector})
        if not isinstance(response.data, list) or not all(isinstance(s, dict) for s in response.data):
            raise QueryError("Malformed series response", {"selector": selector})
        return [{str(k): str(v) for k, v in series.items()} for series in response.data]

    async def health_check(self) -> bool:
        """Probe the build-info endpoint; any failure is reported as False."""
        url = f"{self._base_url}/api/v1/status/buildinfo"
        try:
            async with httpx.AsyncClient(timeout=HEALTH_CHECK_TIMEOUT, auth=self._auth) as client:
                response = await client.get(url, headers=self._headers())
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug("health_check_failed", url=url, error=str(exc))
            return False
        return response.is_success

    async def _request(self, path: str, params: dict[str, Any] | None = None) -> PrometheusResponse:
        """GET ``path`` and return the validated success envelope."""
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RetryableQueryError),
            stop=stop_after_attempt(self._max_retries + 1),
            wait=wait_exponential(multiplier=0.5, max=5),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._request_once(path, params)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _request_once(self, path: str, params: dict[str, Any] | None) -> PrometheusResponse:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, auth=self._auth) as client:
                response = await client.get(url, params=params, headers=self._headers())
        except httpx.TimeoutException as exc:
            logger.warning("prometheus_timeout", url=url, timeout=self._timeout)
            raise RetryableQueryError(f"Request timed out after {self._timeout}s", {"url": url}) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("prometheus_network_error", url=url, error=str(exc))
            raise RetryableQueryError(f"Request failed: {exc}", {"url": url}) from exc

        envelope = _decode_envelope(response)

        if response.is_error:
            error_cls = RetryableQueryError if is_retryable_status(response.status_code) else QueryError
            if envelope is not None and envelope.error:
                raise error_cls(envelope.error, error_type=envelope.error_type)
            raise error_cls(f"HTTP {response.status_code}: {response.reason_phrase}")

        if envelope is None:
            raise QueryError("Malformed response from Prometheus", {"url": url})
        if not envelope.is_success:
            raise QueryError(envelope.error or "Query failed", error_type=envelope.error_type)
        return envelope


def _decode_envelope(response: httpx.Response) -> PrometheusResponse | None:
    try:
        return PrometheusResponse.model_validate(response.json())
    except (ValueError, ValidationError):
        return None


def _query_data(response: PrometheusResponse) -> QueryData:
    if response.data is None:
        raise QueryError(response.error or "Query failed")
    try:
        return QueryData.model_validate(response.data)
    except ValidationError as e:
        raise QueryError("Malformed query response", {"errors": e.error_count()}) from e
