"""
Dispatch timing utilities
"""

import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from loguru import logger


@dataclass
class PerformanceMetrics:
    """Timing metrics for measured operations"""
    operation_count: int = 0
    total_time: float = 0.0
    min_time: float = float("inf")
    max_time: float = 0.0
    avg_time: float = 0.0
    operations: dict[str, int] = field(default_factory=lambda: defaultdict(int))


class PerformanceMonitor:
    """Monitor duration of operations across threads"""

    def __init__(self):
        self.metrics = PerformanceMetrics()
        self._lock = threading.Lock()

    @contextmanager
    def measure(self, operation_name: str):
        """Context manager to measure operation duration"""
        start_time = time.perf_counter()

        try:
            yield
        finally:
            duration = time.perf_counter() - start_time

            with self._lock:
                self.metrics.operation_count += 1
                self.metrics.total_time += duration
                self.metrics.min_time = min(self.metrics.min_time, duration)
                self.metrics.max_time = max(self.metrics.max_time, duration)
                self.metrics.avg_time = self.metrics.total_time / self.metrics.operation_count
                self.metrics.operations[operation_name] += 1

            logger.debug(f"Operation '{operation_name}' completed in {duration:.3f}s")

    def get_summary(self) -> dict[str, Any]:
        """Get performance summary"""
        with self._lock:
            return {
                "total_operations": self.metrics.operation_count,
                "total_time": self.metrics.total_time,
                "average_time": self.metrics.avg_time,
                "min_time": self.metrics.min_time if self.metrics.operation_count else 0.0,
                "max_time": self.metrics.max_time,
                "operations_breakdown": dict(self.metrics.operations),
            }

    def reset(self):
        """Reset all metrics"""
        with self._lock:
            self.metrics = PerformanceMetrics()


# Global performance monitor instance
performance_monitor = PerformanceMonitor()
