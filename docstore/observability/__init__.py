"""
Observability components.

Provides structured logging, metrics collection and health check
capabilities.
"""

from .health import (
    HealthChecker,
    HealthCheckResult,
    HealthStatus,
    check_backend_health,
)
from .logging import (
    ContextualLoggerAdapter,
    document_context,
    get_correlation_id,
    get_logger,
    log_operation,
    set_correlation_id,
)
from .metrics import (
    MetricsCollector,
    OperationMetrics,
    OperationTimer,
    get_metrics_collector,
    record_operation,
    timed_operation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "OperationMetrics",
    "OperationTimer",
    "get_metrics_collector",
    "record_operation",
    "timed_operation",
    # Logging
    "get_correlation_id",
    "set_correlation_id",
    "document_context",
    "ContextualLoggerAdapter",
    "get_logger",
    "log_operation",
    # Health
    "HealthStatus",
    "HealthCheckResult",
    "HealthChecker",
    "check_backend_health",
]
