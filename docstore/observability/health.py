"""
Health check utilities for DOCSTORE.

Provides health check functions for monitoring backend status.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ..constants import HEALTH_DEGRADED_LATENCY_MS
from ..exceptions import DocumentStoreError

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    """Health status enumeration."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheckResult:
    """Result of a health check."""

    name: str
    status: HealthStatus
    message: str
    details: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "status": self.status.value,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class HealthChecker:
    """
    Runs a set of registered health checks and folds them into one status.
    """

    def __init__(self) -> None:
        self._checks: list[Callable[[], Awaitable[HealthCheckResult]]] = []

    def register_check(self, check_func: Callable[[], Awaitable[HealthCheckResult]]) -> None:
        """
        Register a health check function.

        Args:
            check_func: Async function that returns HealthCheckResult
        """
        self._checks.append(check_func)

    async def check_all(self) -> dict[str, Any]:
        """
        Run all registered health checks.

        A check that raises is reported with UNKNOWN status rather than
        failing the whole run.

        Returns:
            Dictionary with overall status and individual check results
        """
        results: list[HealthCheckResult] = []

        for check_func in self._checks:
            try:
                results.append(await check_func())
            except (DocumentStoreError, RuntimeError, ValueError, TypeError, OSError) as e:
                name = getattr(check_func, "__name__", repr(check_func))
                logger.error(f"Health check {name} failed: {e}", exc_info=True)
                results.append(
                    HealthCheckResult(
                        name=name,
                        status=HealthStatus.UNKNOWN,
                        message=f"Check failed: {e}",
                    )
                )

        statuses = [r.status for r in results]
        if HealthStatus.UNHEALTHY in statuses:
            overall_status = HealthStatus.UNHEALTHY
        elif HealthStatus.DEGRADED in statuses:
            overall_status = HealthStatus.DEGRADED
        elif all(s == HealthStatus.HEALTHY for s in statuses):
            overall_status = HealthStatus.HEALTHY
        else:
            overall_status = HealthStatus.UNKNOWN

        return {
            "status": overall_status.value,
            "timestamp": datetime.now().isoformat(),
            "checks": [r.to_dict() for r in results],
        }


async def check_backend_health(
    client: Any | None,
    timeout: float = 5.0,
    degraded_latency_ms: float = HEALTH_DEGRADED_LATENCY_MS,
) -> HealthCheckResult:
    """
    Check that a DocumentClient's backend answers a ping.

    Args:
        client: DocumentClient instance
        timeout: Seconds allowed for the ping
        degraded_latency_ms: Round trips slower than this report DEGRADED

    Returns:
        HealthCheckResult
    """
    if client is None:
        return HealthCheckResult(
            name="backend",
            status=HealthStatus.UNHEALTHY,
            message="Document client not initialized",
        )

    backend_name = client.backend.name
    start = time.perf_counter()
    try:
        reachable = await client.ping(timeout=timeout)
    except DocumentStoreError as e:
        return HealthCheckResult(
            name="backend",
            status=HealthStatus.UNHEALTHY,
            message=f"Backend health check failed: {e}",
            details={"backend": backend_name},
        )
    latency_ms = round((time.perf_counter() - start) * 1000, 2)
    details = {"backend": backend_name, "latency_ms": latency_ms}

    if not reachable:
        return HealthCheckResult(
            name="backend",
            status=HealthStatus.UNHEALTHY,
            message=f"Backend '{backend_name}' did not answer ping",
            details=details,
        )
    if latency_ms > degraded_latency_ms:
        return HealthCheckResult(
            name="backend",
            status=HealthStatus.DEGRADED,
            message=f"Backend '{backend_name}' is slow: {latency_ms:.1f}ms",
            details=details,
        )
    return HealthCheckResult(
        name="backend",
        status=HealthStatus.HEALTHY,
        message=f"Backend '{backend_name}' is healthy",
        details=details,
    )
