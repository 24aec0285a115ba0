"""
Async HTTP client wrapper for the feed and enrichment backends.
Includes retry logic for idempotent reads, timeout management, and metrics collection.
"""
from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

import httpx

from shared.utils.logging import get_logger
from shared.utils.metrics import SERVICE_LATENCY, SERVICE_REQUESTS

logger = get_logger(__name__)

DEFAULT_RETRY_AFTER_S = 2.0
MAX_RETRY_AFTER_S = 10.0


def retry_after_seconds(value: Optional[str]) -> float:
    """Seconds to wait for a Retry-After header given as delta-seconds or HTTP-date."""
    if not value:
        return DEFAULT_RETRY_AFTER_S
    try:
        delay = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return DEFAULT_RETRY_AFTER_S
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        delay = (when - datetime.now(timezone.utc)).total_seconds()
    return min(max(delay, 0.0), MAX_RETRY_AFTER_S)


class ServiceHTTPClient:
    """
    Async HTTP client for one remote service (feed, commentary, image, media).
    GETs are retried on timeouts, 429 and 5xx; POSTs are sent once and callers
    own their retry policy.
    """

    def __init__(
        self,
        service_name: str,
        base_url: str = "",
        headers: dict[str, str] | None = None,
        timeout_s: float = 10.0,
        max_retries: int = 2,
    ) -> None:
        self._service = service_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s
        self._max_retries = max(1, max_retries)
        self._default_headers = headers or {}
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def service_name(self) -> str:
        return self._service

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError(f"ServiceHTTPClient '{self._service}' not started. Call start() first.")
        return self._client

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Perform a GET request with retry, metrics, and structured logging.

        Raises:
            httpx.HTTPStatusError: On non-retryable HTTP errors.
            httpx.TimeoutException: If all retries are exhausted on timeouts.
        """
        client = self._require_client()
        merged_headers = {**self._default_headers, **(extra_headers or {})}
        last_exc: Optional[Exception] = None

        for attempt in range(1, self._max_retries + 1):
            start_time = time.perf_counter()
            status = "unknown"
            try:
                resp = await client.get(path, params=params, headers=merged_headers)
                status = str(resp.status_code)

                if resp.status_code == 429 and attempt < self._max_retries:
                    logger.warning(
                        "service_rate_limited",
                        service=self._service,
                        path=path,
                        attempt=attempt,
                    )
                    await asyncio.sleep(retry_after_seconds(resp.headers.get("Retry-After")))
                    continue

                if resp.status_code >= 500 and attempt < self._max_retries:
                    logger.warning(
                        "service_server_error",
                        service=self._service,
                        path=path,
                        status=resp.status_code,
                        attempt=attempt,
                    )
                    await asyncio.sleep(1.0 * attempt)
                    continue

                resp.raise_for_status()
                logger.debug(
                    "service_request_success",
                    service=self._service,
                    path=path,
                    status=resp.status_code,
                    latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
                return resp

            except httpx.TimeoutException as exc:
                status = "timeout"
                last_exc = exc
                logger.warning("service_timeout", service=self._service, path=path, attempt=attempt)
                if attempt < self._max_retries:
                    await asyncio.sleep(1.0 * attempt)
                    continue

            except httpx.HTTPStatusError as exc:
                status = str(exc.response.status_code)
                last_exc = exc
                logger.error(
                    "service_http_error",
                    service=self._service,
                    path=path,
                    status=exc.response.status_code,
                    attempt=attempt,
                )
                # Don't retry client errors (4xx except 429)
                if 400 <= exc.response.status_code < 500 and exc.response.status_code != 429:
                    raise

            except httpx.TransportError as exc:
                status = "error"
                last_exc = exc
                logger.error(
                    "service_request_error",
                    service=self._service,
                    path=path,
                    error=str(exc),
                    attempt=attempt,
                )

            finally:
                SERVICE_REQUESTS.labels(service=self._service, method="GET", status=status).inc()
                SERVICE_LATENCY.labels(service=self._service).observe(time.perf_counter() - start_time)

        if last_exc:
            raise last_exc
        raise RuntimeError(f"{self._service} request failed after {self._max_retries} attempts")

    async def post(
        self,
        path: str,
        json: Any = None,
        data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Perform a single POST request; non-2xx raises httpx.HTTPStatusError."""
        client = self._require_client()
        merged_headers = {**self._default_headers, **(extra_headers or {})}
        start_time = time.perf_counter()
        status = "error"
        try:
            resp = await client.post(path, json=json, data=data, files=files, headers=merged_headers)
            status = str(resp.status_code)
            resp.raise_for_status()
            logger.debug(
                "service_request_success",
                service=self._service,
                path=path,
                status=resp.status_code,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            return resp
        except httpx.TimeoutException:
            status = "timeout"
            raise
        finally:
            SERVICE_REQUESTS.labels(service=self._service, method="POST", status=status).inc()
            SERVICE_LATENCY.labels(service=self._service).observe(time.perf_counter() - start_time)
