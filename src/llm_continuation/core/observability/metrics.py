"""Structured-log metrics for continuation runs.

Every metric becomes one ``METRIC: <prefix>.<name>`` record at INFO with
the metric itself under ``extra["metric"]``, so any log pipeline can pick
them up. In-process consumers (tests, dashboards) can ``subscribe``.

Metrics emitted by the engine:

    continuation.attempts        counter   labels: reason
    continuation.fragment_chars  histogram labels: reason
    continuation.fragments       gauge     labels: run_id
    continuation.merge           counter   labels: format, level, status
    continuation.duration_ms     timer     labels: run_id
    <timed name>                 timer     labels: status
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

logger = logging.getLogger(__name__)

Number = Union[int, float]
MetricListener = Callable[["Metric"], None]


class MetricType(Enum):
    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"
    TIMER = "timer"


@dataclass(frozen=True)
class Metric:
    name: str
    value: Number
    metric_type: MetricType
    labels: Dict[str, str] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "type": self.metric_type.value,
            "labels": dict(self.labels),
            "timestamp": self.timestamp,
        }


class MetricsCollector:
    """Emits metrics as log records and fans them out to listeners.

    Args:
        prefix: Prepended to every metric name in the log message
        logger: Logger for METRIC records; defaults to this module's
            ``.metrics`` child logger
    """

    def __init__(self, prefix: str = "llm_continuation", *, logger: Optional[logging.Logger] = None):
        self.prefix = prefix
        self._logger = logger or logging.getLogger(f"{__name__}.metrics")
        self._listeners: List[MetricListener] = []

    def subscribe(self, listener: MetricListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: MetricListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, metric: Metric) -> None:
        self._logger.info(f"METRIC: {self.prefix}.{metric.name}", extra={"metric": metric.to_dict()})
        for listener in list(self._listeners):
            try:
                listener(metric)
            except Exception as e:
                # listeners never abort a run
                self._logger.warning(f"Metric listener failed for {metric.name}: {e}")

    def _record(
        self,
        metric_type: MetricType,
        name: str,
        value: Number,
        labels: Optional[Mapping[str, Any]],
    ) -> None:
        rendered = {key: str(label) for key, label in (labels or {}).items()}
        self.emit(Metric(name=name, value=value, metric_type=metric_type, labels=rendered))

    def counter(self, name: str, value: int = 1, labels: Optional[Mapping[str, Any]] = None) -> None:
        self._record(MetricType.COUNTER, name, value, labels)

    def gauge(self, name: str, value: Number, labels: Optional[Mapping[str, Any]] = None) -> None:
        self._record(MetricType.GAUGE, name, value, labels)

    def timer(self, name: str, duration_ms: float, labels: Optional[Mapping[str, Any]] = None) -> None:
        """Record a duration in milliseconds."""
        self._record(MetricType.TIMER, name, duration_ms, labels)

    def histogram(self, name: str, value: Number, labels: Optional[Mapping[str, Any]] = None) -> None:
        self._record(MetricType.HISTOGRAM, name, value, labels)


_metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    """Return the process-wide collector used when none is injected."""
    return _metrics
