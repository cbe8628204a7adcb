"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

REQUEST_COUNT = Counter(
    "pdfkb_requests_total",
    "Total HTTP requests",
    labelnames=("endpoint", "method", "status"),
    registry=REGISTRY,
)

SESSIONS_CREATED = Counter(
    "pdfkb_sessions_created_total",
    "Knowledge base sessions created",
    registry=REGISTRY,
)

ACTIVE_SESSIONS = Gauge(
    "pdfkb_active_sessions",
    "Sessions currently held in the cache",
    registry=REGISTRY,
)

QUERY_COUNT = Counter(
    "pdfkb_queries_total",
    "Questions answered against a session",
    labelnames=("status",),
    registry=REGISTRY,
)

QUERY_LATENCY = Histogram(
    "pdfkb_query_latency_seconds",
    "End-to-end latency of a session query",
    registry=REGISTRY,
)

RETRIEVAL_PATH = Counter(
    "pdfkb_retrieval_path_total",
    "Which retrieval path produced the query context",
    labelnames=("path",),
    registry=REGISTRY,
)

GENERATION_FALLBACKS = Counter(
    "pdfkb_generation_fallbacks_total",
    "Study features served from fallback content",
    labelnames=("feature",),
    registry=REGISTRY,
)

INGEST_DURATION = Histogram(
    "pdfkb_ingest_duration_seconds",
    "Knowledge base build duration",
    labelnames=("stage",),
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "REQUEST_COUNT",
    "SESSIONS_CREATED",
    "ACTIVE_SESSIONS",
    "QUERY_COUNT",
    "QUERY_LATENCY",
    "RETRIEVAL_PATH",
    "GENERATION_FALLBACKS",
    "INGEST_DURATION",
    "metrics_response",
]
