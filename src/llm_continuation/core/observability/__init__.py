"""Observability helpers (structured log metrics)."""

from llm_continuation.core.observability.metrics import (
    Metric,
    MetricsCollector,
    MetricType,
    get_metrics,
)

__all__ = ["Metric", "MetricType", "MetricsCollector", "get_metrics"]
