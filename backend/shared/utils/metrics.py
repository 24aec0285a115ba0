"""
Lightweight metrics collection for the live chess tracker.
Wraps prometheus_client with async-safe patterns.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
SERVICE_REQUESTS = Counter(
    "lc_service_requests_total",
    "Total outbound HTTP requests per remote service",
    ["service", "method", "status"],
)
RECONCILE_DECISIONS = Counter(
    "lc_reconcile_decisions_total",
    "Reconciliation decisions taken per polled game",
    ["decision"],
)
COMMENTARY_ATTEMPTS = Counter(
    "lc_commentary_attempts_total",
    "Commentary generation attempts",
    ["outcome"],
)
IMAGE_FAILURES = Counter(
    "lc_image_failures_total",
    "Image generation or upload failures",
    ["stage"],
)
CYCLE_ERRORS = Counter(
    "lc_cycle_errors_total",
    "Per-game errors absorbed by the monitor loop",
    ["kind"],
)

# ── Histograms ──────────────────────────────────────────────────────────
SERVICE_LATENCY = Histogram(
    "lc_service_latency_seconds",
    "Outbound request latency in seconds",
    ["service"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)
ENRICHMENT_PROCESSING = Histogram(
    "lc_enrichment_seconds",
    "Time to enrich a single changed position, retries included",
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 60.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
CURRENT_ROUND = Gauge(
    "lc_current_round",
    "Round currently monitored",
)
MONITORED_GAMES = Gauge(
    "lc_monitored_games",
    "Number of game slots polled per cycle",
)


@asynccontextmanager
async def atrack_latency(histogram: Histogram, **labels: str) -> AsyncIterator[None]:
    """Async context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if labels:
            histogram.labels(**labels).observe(elapsed)
        else:
            histogram.observe(elapsed)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
