# tests/test_metrics.py

import pytest

from recurring_tasks.utils.metrics import MetricsCollector


def test_counters_start_at_zero(metrics: MetricsCollector) -> None:
    counters = metrics.get_metrics()["counters"]

    assert set(MetricsCollector.COUNTERS) <= set(counters)
    assert all(counters[name] == 0 for name in MetricsCollector.COUNTERS)


def test_time_operation_records_failures_too(metrics: MetricsCollector) -> None:
    with metrics.time_operation("rule_processing_seconds"):
        pass
    with pytest.raises(RuntimeError):
        with metrics.time_operation("rule_processing_seconds"):
            raise RuntimeError("boom")

    timer = metrics.get_metrics()["timers"]["rule_processing_seconds"]
    assert timer["count"] == 2
    assert timer["max_seconds"] >= timer["avg_seconds"] >= 0


def test_reset(metrics: MetricsCollector) -> None:
    metrics.occurrences_created(3)
    metrics.record_timer("sweep_duration_seconds", 0.5)

    metrics.reset()

    snapshot = metrics.get_metrics()
    assert snapshot["counters"]["occurrences_created_total"] == 0
    assert snapshot["timers"] == {}
