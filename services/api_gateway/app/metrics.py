"""Prometheus metrics for the API Gateway's document aggregation."""

from __future__ import annotations

import time
from prometheus_client import Counter, Histogram

_DOCUMENT_FETCH_TOTAL = Counter(
    "gateway_document_fetch_total",
    "Downstream API description fetches grouped by outcome",
    ["service", "outcome"],
)

_DOCUMENT_FETCH_SECONDS = Histogram(
    "gateway_document_fetch_seconds",
    "Latency of downstream API description fetches",
    ["service"],
    buckets=(
        0.01,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
    ),
)

_AGGREGATE_CACHE_TOTAL = Counter(
    "gateway_aggregate_cache_total",
    "Aggregate document lookups grouped by result (hit, miss, stale, unavailable)",
    ["result"],
)

_MERGE_WARNINGS_TOTAL = Counter(
    "gateway_merge_warnings_total",
    "Warnings recorded while merging service documents",
    ["kind"],
)


def record_fetch_result(service: str, outcome: str, elapsed_seconds: float) -> None:
    """Record the outcome and latency of one document fetch."""
    _DOCUMENT_FETCH_TOTAL.labels(service=service, outcome=outcome).inc()
    _DOCUMENT_FETCH_SECONDS.labels(service=service).observe(elapsed_seconds)


def record_cache_lookup(result: str) -> None:
    _AGGREGATE_CACHE_TOTAL.labels(result=result).inc()


def record_merge_warning(kind: str) -> None:
    _MERGE_WARNINGS_TOTAL.labels(kind=kind).inc()


class TimedFetch:
    """Context manager to time a document fetch and emit metrics.

    Callers set ``outcome`` before leaving the block; an escaping exception is
    recorded as ``error``.
    """

    def __init__(self, service: str) -> None:
        self.service = service
        self.outcome = "ok"
        self.elapsed = 0.0
        self._start = 0.0

    def __enter__(self) -> TimedFetch:
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self.elapsed = time.perf_counter() - self._start
        outcome = "error" if exc_type else self.outcome
        record_fetch_result(self.service, outcome, self.elapsed)
