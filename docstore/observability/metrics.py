"""
Metrics collection for DOCSTORE.

Every client operation is timed and recorded here, giving per-operation
counts, latencies and error rates.
"""

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..constants import MAX_METRICS

logger = logging.getLogger(__name__)


@dataclass
class OperationMetrics:
    """Metrics for a single operation."""

    operation_name: str
    count: int = 0
    total_duration_ms: float = 0.0
    min_duration_ms: float = float("inf")
    max_duration_ms: float = 0.0
    error_count: int = 0
    last_execution: datetime | None = None

    @property
    def avg_duration_ms(self) -> float:
        """Calculate average duration in milliseconds."""
        return self.total_duration_ms / self.count if self.count > 0 else 0.0

    @property
    def error_rate(self) -> float:
        """Calculate error rate as percentage."""
        return (self.error_count / self.count * 100) if self.count > 0 else 0.0

    def record(self, duration_ms: float, success: bool = True) -> None:
        self.count += 1
        self.total_duration_ms += duration_ms
        self.min_duration_ms = min(self.min_duration_ms, duration_ms)
        self.max_duration_ms = max(self.max_duration_ms, duration_ms)
        if not success:
            self.error_count += 1
        self.last_execution = datetime.now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation_name,
            "count": self.count,
            "avg_duration_ms": round(self.avg_duration_ms, 2),
            "min_duration_ms": (
                round(self.min_duration_ms, 2) if self.min_duration_ms != float("inf") else 0.0
            ),
            "max_duration_ms": round(self.max_duration_ms, 2),
            "error_count": self.error_count,
            "error_rate_percent": round(self.error_rate, 2),
            "last_execution": (self.last_execution.isoformat() if self.last_execution else None),
        }


class MetricsCollector:
    """
    Thread-safe collector for operation metrics.

    Metrics are keyed by operation name plus tags (e.g. the collection), and
    the number of keys is bounded; the least recently used key is evicted
    first.
    """

    def __init__(self, max_metrics: int = MAX_METRICS):
        self._metrics: OrderedDict[str, OperationMetrics] = OrderedDict()
        self._lock = threading.Lock()
        self._max_metrics = max_metrics

    def record_operation(
        self, operation_name: str, duration_ms: float, success: bool = True, **tags: Any
    ) -> None:
        """
        Record an operation execution.

        Args:
            operation_name: Name of the operation (e.g., "docstore.read")
            duration_ms: Duration in milliseconds
            success: Whether the operation succeeded
            **tags: Additional tags for filtering (collection, etc.)
        """
        key = operation_name
        if tags:
            tag_str = "_".join(f"{k}={v}" for k, v in sorted(tags.items()))
            key = f"{operation_name}[{tag_str}]"

        with self._lock:
            metric = self._metrics.get(key)
            if metric is None:
                if len(self._metrics) >= self._max_metrics:
                    self._metrics.popitem(last=False)
                metric = OperationMetrics(operation_name=operation_name)
                self._metrics[key] = metric
            else:
                self._metrics.move_to_end(key)
            metric.record(duration_ms, success)

    def get_metrics(self, operation_name: str | None = None) -> dict[str, Any]:
        """
        Get metrics for operations, optionally filtered by operation name prefix.
        """
        with self._lock:
            metrics = {
                k: v.to_dict()
                for k, v in self._metrics.items()
                if operation_name is None or k.startswith(operation_name)
            }
            total_operations = len(self._metrics)

        return {
            "timestamp": datetime.now().isoformat(),
            "metrics": metrics,
            "total_operations": total_operations,
        }

    def get_summary(self) -> dict[str, Any]:
        """
        Get metrics aggregated by operation name (tags folded together).
        """
        with self._lock:
            aggregated: dict[str, OperationMetrics] = {}
            for metric in self._metrics.values():
                agg = aggregated.setdefault(
                    metric.operation_name, OperationMetrics(operation_name=metric.operation_name)
                )
                agg.count += metric.count
                agg.total_duration_ms += metric.total_duration_ms
                agg.min_duration_ms = min(agg.min_duration_ms, metric.min_duration_ms)
                agg.max_duration_ms = max(agg.max_duration_ms, metric.max_duration_ms)
                agg.error_count += metric.error_count
                if metric.last_execution and (
                    not agg.last_execution or metric.last_execution > agg.last_execution
                ):
                    agg.last_execution = metric.last_execution
            total_operations = len(self._metrics)

        return {
            "timestamp": datetime.now().isoformat(),
            "total_operations": total_operations,
            "summary": {name: m.to_dict() for name, m in aggregated.items()},
        }

    def get_operation_count(self, operation_name: str) -> int:
        """Get the count of executions for an operation across all tags."""
        with self._lock:
            return sum(
                m.count for m in self._metrics.values() if m.operation_name == operation_name
            )

    def get_error_count(self, operation_name: str) -> int:
        """Get the count of failed executions for an operation across all tags."""
        with self._lock:
            return sum(
                m.error_count
                for m in self._metrics.values()
                if m.operation_name == operation_name
            )

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self._metrics.clear()


# Process-wide default collector, used when a client is not given its own
_metrics_collector: MetricsCollector | None = None
_collector_lock = threading.Lock()


def get_metrics_collector() -> MetricsCollector:
    """Get or create the default metrics collector."""
    global _metrics_collector
    if _metrics_collector is None:
        with _collector_lock:
            if _metrics_collector is None:
                _metrics_collector = MetricsCollector()
    return _metrics_collector


def record_operation(
    operation_name: str, duration_ms: float, success: bool = True, **tags: Any
) -> None:
    """Record an operation in the default metrics collector."""
    get_metrics_collector().record_operation(operation_name, duration_ms, success, **tags)


class OperationTimer:
    """Handle yielded by timed_operation(); lets the caller mark a failure explicitly."""

    def __init__(self) -> None:
        self.start_time = time.perf_counter()
        self.success = True

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.start_time) * 1000

    def fail(self) -> None:
        self.success = False


@asynccontextmanager
async def timed_operation(
    operation_name: str,
    collector: MetricsCollector | None = None,
    **tags: Any,
) -> AsyncIterator[OperationTimer]:
    """
    Time a block and record it as an operation.

    Any exception escaping the block (cancellation included) marks the
    operation as failed.

    Usage:
        async with timed_operation("docstore.read", collection="users"):
            ...
    """
    target = collector or get_metrics_collector()
    timer = OperationTimer()
    try:
        yield timer
    except BaseException:
        timer.fail()
        raise
    finally:
        target.record_operation(operation_name, timer.elapsed_ms, timer.success, **tags)
