"""Health check endpoints for monitoring and orchestration.

This module provides:
- /health (liveness): Basic check that the service is running
- /health/ready (readiness): Check of MongoDB and the cache backend

The cache only speeds requests up, so an unreachable cache reports the
service as degraded rather than not ready. MongoDB being unreachable makes
the service not ready.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import structlog

from src.cache.base import Cache
from src.cache.memory import MemoryCache
from src.cache.remote import RedisCache

logger = structlog.get_logger(__name__)


class HealthStatus(Enum):
    """Health status values."""

    OK = "ok"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ServiceStatus(Enum):
    """Overall service status."""

    READY = "ready"
    DEGRADED = "degraded"
    NOT_READY = "not_ready"


@dataclass
class ComponentCheck:
    """Result of a component health check.

    Attributes:
        name: Component name.
        status: Health status.
        latency_ms: Check latency in milliseconds.
        error: Error message if unhealthy.
        details: Additional details.
    """

    name: str
    status: HealthStatus
    latency_ms: float
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.error:
            result["error"] = self.error
        if self.details:
            result["details"] = self.details
        return result


@dataclass
class HealthCheckConfig:
    """Configuration for health checks.

    Attributes:
        mongodb_timeout: Timeout for the MongoDB ping.
        cache_timeout: Timeout for the cache check.
    """

    mongodb_timeout: float = 2.0
    cache_timeout: float = 1.0


DEFAULT_HEALTH_CONFIG = HealthCheckConfig()


class HealthChecker:
    """Base class for component health checkers."""

    def __init__(self, name: str, timeout: float = 5.0) -> None:
        """Initialize health checker.

        Args:
            name: Component name.
            timeout: Check timeout in seconds.
        """
        self.name = name
        self.timeout = timeout

    async def check(self) -> ComponentCheck:
        """Run health check.

        Returns:
            ComponentCheck result.
        """
        start = time.monotonic()
        try:
            result = await asyncio.wait_for(
                self._do_check(),
                timeout=self.timeout,
            )
            latency_ms = (time.monotonic() - start) * 1000
            return ComponentCheck(
                name=self.name,
                status=result.status,
                latency_ms=latency_ms,
                error=result.error,
                details=result.details,
            )
        except TimeoutError:
            latency_ms = (time.monotonic() - start) * 1000
            return ComponentCheck(
                name=self.name,
                status=self._failure_status,
                latency_ms=latency_ms,
                error=f"Timeout after {self.timeout}s",
            )
        except Exception as e:
            latency_ms = (time.monotonic() - start) * 1000
            return ComponentCheck(
                name=self.name,
                status=self._failure_status,
                latency_ms=latency_ms,
                error=str(e),
            )

    @property
    def _failure_status(self) -> HealthStatus:
        return HealthStatus.UNHEALTHY

    async def _do_check(self) -> ComponentCheck:
        """Implement the actual health check.

        Returns:
            ComponentCheck result.
        """
        raise NotImplementedError


class MongoDBHealthChecker(HealthChecker):
    """Health checker for the MongoDB ledger."""

    def __init__(
        self,
        client: Any | None = None,  # pymongo AsyncMongoClient
        timeout: float = DEFAULT_HEALTH_CONFIG.mongodb_timeout,
    ) -> None:
        super().__init__("mongodb", timeout)
        self.client = client

    async def _do_check(self) -> ComponentCheck:
        """Check MongoDB connectivity."""
        if self.client is None:
            return ComponentCheck(
                name=self.name,
                status=HealthStatus.UNHEALTHY,
                latency_ms=0,
                error="No MongoDB client configured",
            )

        result = await self.client.admin.command("ping")
        if result.get("ok"):
            return ComponentCheck(name=self.name, status=HealthStatus.OK, latency_ms=0)
        return ComponentCheck(
            name=self.name,
            status=HealthStatus.UNHEALTHY,
            latency_ms=0,
            error="Ping failed",
        )


class CacheHealthChecker(HealthChecker):
    """Health checker for the cache backend."""

    def __init__(
        self,
        cache: Cache,
        timeout: float = DEFAULT_HEALTH_CONFIG.cache_timeout,
    ) -> None:
        super().__init__("cache", timeout)
        self.cache = cache

    @property
    def _failure_status(self) -> HealthStatus:
        return HealthStatus.DEGRADED

    async def _do_check(self) -> ComponentCheck:
        """Check the cache backend."""
        if isinstance(self.cache, RedisCache):
            if await self.cache.ping():
                return ComponentCheck(
                    name=self.name,
                    status=HealthStatus.OK,
                    latency_ms=0,
                    details={"backend": "redis"},
                )
            return ComponentCheck(
                name=self.name,
                status=HealthStatus.DEGRADED,
                latency_ms=0,
                error="Redis ping failed",
                details={"backend": "redis"},
            )

        if isinstance(self.cache, MemoryCache):
            return ComponentCheck(
                name=self.name,
                status=HealthStatus.OK,
                latency_ms=0,
                details={
                    "backend": "memory",
                    "entries": len(self.cache),
                    "sweeper_running": self.cache.running,
                },
            )

        return ComponentCheck(
            name=self.name,
            status=HealthStatus.OK,
            latency_ms=0,
            details={"backend": type(self.cache).__name__},
        )


@dataclass
class HealthCheckResult:
    """Result of full health check.

    Attributes:
        status: Overall service status.
        checks: Individual component checks.
        timestamp: When the check was performed.
        version: Service version.
        cache_metrics: Hit/miss counters of the statistics service.
    """

    status: ServiceStatus
    checks: dict[str, dict[str, Any]]
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    version: str = "1.0.0"
    cache_metrics: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result = {
            "status": self.status.value,
            "checks": self.checks,
            "timestamp": self.timestamp.isoformat(),
            "version": self.version,
        }
        if self.cache_metrics is not None:
            result["cache_metrics"] = self.cache_metrics
        return result


class HealthService:
    """Service for running health checks.

    Example:
        service = HealthService()
        service.register_checker(MongoDBHealthChecker(client=mongo_client))
        service.register_checker(CacheHealthChecker(cache))

        result = await service.readiness()
    """

    def __init__(self, version: str = "1.0.0") -> None:
        self.version = version
        self._checkers: list[HealthChecker] = []

    def register_checker(self, checker: HealthChecker) -> None:
        """Register a health checker."""
        self._checkers.append(checker)
        logger.debug("health_checker_registered", name=checker.name)

    async def liveness(self) -> dict[str, Any]:
        """Basic liveness check.

        Does not check dependencies.
        """
        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat(),
        }

    async def readiness(self, cache_metrics: dict[str, Any] | None = None) -> HealthCheckResult:
        """Full readiness check.

        Checks all registered components in parallel.

        Args:
            cache_metrics: Optional cache metrics to include in the result.

        Returns:
            Comprehensive health check result.
        """
        results = await asyncio.gather(*(checker.check() for checker in self._checkers))

        checks: dict[str, dict[str, Any]] = {}
        all_ok = True
        any_unhealthy = False

        for result in results:
            checks[result.name] = result.to_dict()
            if result.status == HealthStatus.UNHEALTHY:
                any_unhealthy = True
                all_ok = False
            elif result.status == HealthStatus.DEGRADED:
                all_ok = False

        if any_unhealthy:
            status = ServiceStatus.NOT_READY
        elif all_ok:
            status = ServiceStatus.READY
        else:
            status = ServiceStatus.DEGRADED

        logger.info(
            "health_check_completed",
            status=status.value,
            checks_count=len(checks),
        )

        return HealthCheckResult(
            status=status,
            checks=checks,
            version=self.version,
            cache_metrics=cache_metrics,
        )


def create_health_service(
    version: str = "1.0.0",
    mongo_client: Any | None = None,
    cache: Cache | None = None,
    config: HealthCheckConfig | None = None,
) -> HealthService:
    """Create a configured health service.

    Args:
        version: Service version.
        mongo_client: MongoDB client.
        cache: Cache backend.
        config: Health check configuration.

    Returns:
        Configured HealthService.
    """
    config = config or DEFAULT_HEALTH_CONFIG
    service = HealthService(version=version)

    if mongo_client is not None:
        service.register_checker(
            MongoDBHealthChecker(client=mongo_client, timeout=config.mongodb_timeout)
        )

    if cache is not None:
        service.register_checker(CacheHealthChecker(cache, timeout=config.cache_timeout))

    return service
