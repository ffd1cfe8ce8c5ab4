"""Observability module for OpenTelemetry-aligned tracing, metrics, and logging."""

from counsel_search.observability.context import get_trace_context, set_trace_context, trace_context
from counsel_search.observability.logging import JsonFormatter, configure_logging
from counsel_search.observability.metrics import (
    CORRECTION_TRUNCATIONS,
    DEGRADED_RESULTS,
    INDEX_REBUILDS,
    INDEX_TERM_COUNT,
    SEARCH_LATENCY,
    SEARCH_REQUESTS,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
)
from counsel_search.observability.tracing import create_span, get_tracer, init_tracing


__all__ = [
    "CORRECTION_TRUNCATIONS",
    "DEGRADED_RESULTS",
    "INDEX_REBUILDS",
    "INDEX_TERM_COUNT",
    "SEARCH_LATENCY",
    "SEARCH_REQUESTS",
    "JsonFormatter",
    "configure_logging",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "set_trace_context",
    "trace_context",
]
