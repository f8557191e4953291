"""FastAPI application for the Ledger Statistics API.

This module contains:
- Statistics endpoints (GGR, daily wager volume, wager percentile)
- API key authentication
- Health check endpoints
"""

from src.api.auth import APIKeyAuth
from src.api.health import (
    DEFAULT_HEALTH_CONFIG,
    CacheHealthChecker,
    ComponentCheck,
    HealthCheckConfig,
    HealthChecker,
    HealthCheckResult,
    HealthService,
    HealthStatus,
    MongoDBHealthChecker,
    ServiceStatus,
    create_health_service,
)
from src.api.routes import build_cache, create_app

__all__ = [
    # Authentication
    "APIKeyAuth",
    # Health check classes
    "CacheHealthChecker",
    "ComponentCheck",
    "HealthCheckConfig",
    "HealthCheckResult",
    "HealthChecker",
    "HealthService",
    "MongoDBHealthChecker",
    # Health check enums
    "HealthStatus",
    "ServiceStatus",
    # Configuration
    "DEFAULT_HEALTH_CONFIG",
    # Factories
    "build_cache",
    "create_app",
    "create_health_service",
]
