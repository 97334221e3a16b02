"""
Metrics for the recurring task engine.

In-process counters for occurrence generation and sweep outcomes, plus
timing statistics per operation. Exposed at ``GET /internal/metrics``.
"""

import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Dict

from recurring_tasks.utils.dates import utc_now


class MetricsCollector:
    """Thread-safe counters and timers; the scheduler and request handlers share one instance."""

    COUNTERS = (
        "occurrences_created_total",
        "duplicate_occurrences_total",
        "rules_processed_total",
        "rule_errors_total",
        "sweeps_completed_total",
        "sweeps_skipped_total",
        "sweeps_failed_total",
    )

    def __init__(self):
        self.lock = threading.Lock()
        self._reset_locked()

    def _reset_locked(self):
        self.counters: Dict[str, int] = defaultdict(int, {name: 0 for name in self.COUNTERS})
        # name -> [count, total seconds, max seconds]
        self.timings: Dict[str, list] = {}

    def reset(self):
        """Zero every counter and drop all timings."""
        with self.lock:
            self._reset_locked()

    def increment_counter(self, metric_name: str, value: int = 1):
        with self.lock:
            self.counters[metric_name] += value

    def record_timer(self, metric_name: str, duration: float):
        """Add one measurement (seconds) to a timer."""
        with self.lock:
            stats = self.timings.setdefault(metric_name, [0, 0.0, 0.0])
            stats[0] += 1
            stats[1] += duration
            stats[2] = max(stats[2], duration)

    def get_metrics(self) -> Dict[str, Any]:
        """Snapshot of all counters and timers."""
        with self.lock:
            timers = {
                name: {
                    "count": count,
                    "total_seconds": round(total, 6),
                    "avg_seconds": round(total / count, 6) if count else 0.0,
                    "max_seconds": round(longest, 6),
                }
                for name, (count, total, longest) in self.timings.items()
            }
            return {
                "counters": dict(self.counters),
                "timers": timers,
                "timestamp": utc_now().isoformat(),
            }

    def occurrences_created(self, count: int = 1):
        if count:
            self.increment_counter("occurrences_created_total", count)

    def duplicate_occurrence(self):
        self.increment_counter("duplicate_occurrences_total")

    def rule_processed(self):
        self.increment_counter("rules_processed_total")

    def rule_error(self):
        self.increment_counter("rule_errors_total")

    @contextmanager
    def time_operation(self, metric_name: str):
        """Time the enclosed block, including blocks that raise."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record_timer(metric_name, time.perf_counter() - start)


# Global metrics instance
metrics_collector = MetricsCollector()
