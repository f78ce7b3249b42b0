"""
Health endpoints.

Key behaviors:
- /health_check: Empty 200 while the process is serving
- /health/ready: Readiness probe (dependency checks, 503 on failure)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from fastapi import APIRouter, Response, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# --- Types ---


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass
class CheckResult:
    """Result of a single health check."""

    name: str
    status: HealthStatus
    message: str = ""
    latency_ms: float = 0.0
    details: dict[str, Any] = field(default_factory=dict)


# --- Health Check Protocol ---


class HealthCheck(Protocol):
    """Protocol for health checks."""

    name: str

    def check(self) -> CheckResult:
        """Run the health check and return result."""
        ...


# --- Database Check ---


class DatabaseCheck:
    """Database connectivity check."""

    name = "database"

    def __init__(self, ping: Callable[[], object]) -> None:
        """Initialize with the store's ping function."""
        self._ping = ping

    def check(self) -> CheckResult:
        """Check database connectivity."""
        start = time.time()

        try:
            self._ping()
        except Exception as e:
            latency = (time.time() - start) * 1000
            logger.warning("Database health check failed: %s", e)
            return CheckResult(
                name=self.name,
                status=HealthStatus.UNHEALTHY,
                message="Database unavailable",
                latency_ms=latency,
            )

        latency = (time.time() - start) * 1000
        return CheckResult(
            name=self.name,
            status=HealthStatus.HEALTHY,
            message="Database connected",
            latency_ms=latency,
        )


# --- FastAPI Router ---


def create_health_router(
    version: str = "0.0.0",
    checks: Sequence[HealthCheck] = (),
) -> APIRouter:
    """
    Create FastAPI router for health endpoints.

    Args:
        version: Application version string
        checks: Readiness checks run by /health/ready

    Returns:
        FastAPI router with health endpoints
    """
    router = APIRouter(tags=["health"])

    @router.get(
        "/health_check",
        response_class=Response,
        responses={200: {"description": "Service is serving requests"}},
    )
    def health_check() -> Response:
        """Liveness endpoint with an empty body."""
        return Response(status_code=status.HTTP_200_OK)

    @router.get(
        "/health/ready",
        response_model=None,
        responses={
            200: {"description": "Service is ready to accept traffic"},
            503: {"description": "Service is not ready"},
        },
    )
    def readiness_check() -> JSONResponse:
        """
        Readiness probe.

        Returns 200 if all dependency checks pass.
        """
        results = [check.check() for check in checks]
        is_ready = all(r.status == HealthStatus.HEALTHY for r in results)

        response = {
            "ready": is_ready,
            "version": version,
            "checks": [
                {
                    "name": r.name,
                    "status": r.status.value,
                    "message": r.message,
                    "latency_ms": r.latency_ms,
                }
                for r in results
            ],
        }

        status_code = status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE

        return JSONResponse(content=response, status_code=status_code)

    return router
