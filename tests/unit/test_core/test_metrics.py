"""Tests for the METRIC log collector."""

import logging

from llm_continuation.core.observability import MetricsCollector, MetricType, get_metrics


class TestMetricsCollector:
    def test_listeners_receive_metrics(self):
        collector = MetricsCollector(prefix="test")
        seen = []
        collector.subscribe(seen.append)

        collector.counter("continuation.attempts", labels={"reason": "length"})
        collector.gauge("continuation.fragments", 3)
        collector.timer("continuation.duration_ms", 12.5)
        collector.histogram("fragment.size", 400)

        assert [m.metric_type for m in seen] == [
            MetricType.COUNTER,
            MetricType.GAUGE,
            MetricType.TIMER,
            MetricType.HISTOGRAM,
        ]
        assert seen[0].labels == {"reason": "length"}
        assert seen[0].value == 1

    def test_unsubscribe(self):
        collector = MetricsCollector()
        seen = []
        collector.subscribe(seen.append)
        collector.unsubscribe(seen.append)

        collector.counter("x")

        assert seen == []

    def test_failing_listener_does_not_raise(self, caplog):
        collector = MetricsCollector()

        def broken(metric):
            raise RuntimeError("listener down")

        collector.subscribe(broken)
        with caplog.at_level(logging.WARNING):
            collector.counter("x")

        assert "listener down" in caplog.text

    def test_emits_metric_log_line(self, caplog):
        collector = MetricsCollector(prefix="engine")

        with caplog.at_level(logging.INFO):
            collector.counter("continuation.merge")

        assert "METRIC: engine.continuation.merge" in caplog.text

    def test_to_dict(self):
        collector = MetricsCollector()
        seen = []
        collector.subscribe(seen.append)
        collector.gauge("g", 2.5, labels={"a": "b"})

        data = seen[0].to_dict()
        assert data["type"] == "gauge"
        assert data["value"] == 2.5
        assert "timestamp" in data

    def test_global_collector(self):
        assert get_metrics() is get_metrics()
