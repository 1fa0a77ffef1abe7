"""
Metrics Collection for Recurrence Stores and Migrations.

Counts store reads and writes and times store operations.
"""

import time
from typing import Dict, Any, Iterator
from collections import defaultdict
from contextlib import contextmanager
import threading

from planner_recurrence.utils.dates import utcnow


class MetricsCollector:
    """Collects and manages store operation metrics."""

    def __init__(self):
        """Initialize metrics collector."""
        self.metrics = defaultdict(int)
        self.timers = defaultdict(float)
        self.lock = threading.Lock()

        # Initialize counters
        self.metrics["store_reads_total"] = 0
        self.metrics["store_writes_total"] = 0
        self.metrics["store_batch_commits_total"] = 0
        self.metrics["store_errors_total"] = 0

    def increment_counter(self, metric_name: str, value: int = 1):
        """Increment a counter metric."""
        with self.lock:
            self.metrics[metric_name] += value

    def record_timer(self, metric_name: str, duration: float):
        """Record a timing metric."""
        with self.lock:
            self.timers[metric_name] += duration

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics values."""
        with self.lock:
            return {
                "counters": dict(self.metrics),
                "timers": dict(self.timers),
                "timestamp": utcnow().isoformat()
            }

    def store_read(self):
        self.increment_counter("store_reads_total")

    def store_write(self, documents: int = 1):
        self.increment_counter("store_writes_total", documents)

    def batch_commit(self):
        self.increment_counter("store_batch_commits_total")

    def store_error(self):
        self.increment_counter("store_errors_total")

    @property
    def writes(self) -> int:
        return self.metrics["store_writes_total"]

    @contextmanager
    def timer(self, metric_name: str) -> Iterator[None]:
        """Context manager to time an operation."""
        start_time = time.time()
        try:
            yield
        finally:
            self.record_timer(metric_name, time.time() - start_time)
