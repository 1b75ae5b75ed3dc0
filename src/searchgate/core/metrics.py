"""Prometheus metrics for monitoring SearchGate."""

from collections.abc import Iterator
from contextlib import contextmanager
from time import perf_counter

from prometheus_client import Counter, Gauge, Histogram

# Request metrics
request_latency_seconds = Histogram(
    "searchgate_request_latency_seconds",
    "Latency of HTTP requests in seconds",
    ["endpoint", "method"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0),
)

request_total = Counter(
    "searchgate_request_total",
    "Total number of HTTP requests",
    ["endpoint", "method", "status"],
)

active_requests = Gauge(
    "searchgate_active_requests",
    "Number of active HTTP requests",
)

# Gatekeeper metrics
gatekeeper_outcomes_total = Counter(
    "searchgate_gatekeeper_outcomes_total",
    "Gatekeeper decisions by outcome",
    ["outcome"],
)

rate_limit_decisions_total = Counter(
    "searchgate_rate_limit_decisions_total",
    "Rate limiter admit decisions",
    ["allowed"],
)

cache_lookups_total = Counter(
    "searchgate_cache_lookups_total",
    "Response cache lookups by result",
    ["result"],
)

upstream_latency_seconds = Histogram(
    "searchgate_upstream_latency_seconds",
    "Latency of upstream search API calls in seconds",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0),
)


def track_outcome(outcome: str) -> None:
    """Count a gatekeeper outcome (allowed, rate_limited, ...)."""
    gatekeeper_outcomes_total.labels(outcome=outcome).inc()


def track_rate_limit_decision(allowed: bool) -> None:
    rate_limit_decisions_total.labels(allowed=str(allowed).lower()).inc()


def track_cache_lookup(hit: bool) -> None:
    cache_lookups_total.labels(result="hit" if hit else "miss").inc()


@contextmanager
def track_upstream_time(operation: str) -> Iterator[None]:
    """Context manager to track upstream call duration.

    Args:
        operation: Operation type (e.g., 'search', 'details')

    Example:
        with track_upstream_time("search"):
            response = await client.fetch(params)
    """
    start = perf_counter()
    try:
        yield
    finally:
        upstream_latency_seconds.labels(operation=operation).observe(perf_counter() - start)
