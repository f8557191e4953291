"""Application configuration settings.

This module provides centralized configuration management using environment
variables with sensible defaults.
"""

import os
from dataclasses import dataclass


def _get_bool_env(name: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable.

    Args:
        name: Environment variable name.
        default: Default value if not set.

    Returns:
        Boolean value from environment.
    """
    value = os.getenv(name, "").lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    return default


def _get_float_env(name: str, default: float) -> float:
    """Get a float value from environment variable.

    Unparseable values fall back to the default.
    """
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        MONGODB_URI: MongoDB connection string.
        MONGODB_DATABASE: Database holding the ledger.
        MONGODB_COLLECTION: Collection holding transactions.
        HTTP_PORT: Port the API listens on.
        API_KEY: Value expected in the Authorization header.
        REDIS_URL: Redis connection URL for caching.
        CACHE_BACKEND: "redis" or "memory".
        CACHE_TTL_SECONDS: Lifetime of cached statistics.
        CACHE_SWEEP_INTERVAL_SECONDS: Interval of the in-process cache sweep.
        REDIS_OPERATION_TIMEOUT: Timeout for each Redis get/set/delete.
        REDIS_CONNECT_TIMEOUT: Timeout for the startup ping.
        LOG_LEVEL: Logging level.
        LOG_JSON: Render logs as JSON instead of console output.
    """

    # Ledger
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "casino"
    MONGODB_COLLECTION: str = "transactions"

    # HTTP
    HTTP_PORT: int = 8080
    API_KEY: str = "test-api-key"

    # Cache
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_BACKEND: str = "redis"
    CACHE_TTL_SECONDS: float = 300.0  # 5 minutes
    CACHE_SWEEP_INTERVAL_SECONDS: float = 300.0
    REDIS_OPERATION_TIMEOUT: float = 1.0
    REDIS_CONNECT_TIMEOUT: float = 5.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables.

        Returns:
            Settings instance populated from environment.
        """
        return cls(
            MONGODB_URI=os.getenv("MONGODB_URI", "mongodb://localhost:27017"),
            MONGODB_DATABASE=os.getenv("MONGODB_DATABASE", "casino"),
            MONGODB_COLLECTION=os.getenv("MONGODB_COLLECTION", "transactions"),
            HTTP_PORT=int(_get_float_env("HTTP_PORT", 8080)),
            API_KEY=os.getenv("API_KEY", "test-api-key"),
            REDIS_URL=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            CACHE_BACKEND=os.getenv("CACHE_BACKEND", "redis").lower(),
            CACHE_TTL_SECONDS=_get_float_env("CACHE_TTL_SECONDS", 300.0),
            CACHE_SWEEP_INTERVAL_SECONDS=_get_float_env("CACHE_SWEEP_INTERVAL_SECONDS", 300.0),
            REDIS_OPERATION_TIMEOUT=_get_float_env("REDIS_OPERATION_TIMEOUT", 1.0),
            REDIS_CONNECT_TIMEOUT=_get_float_env("REDIS_CONNECT_TIMEOUT", 5.0),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
            LOG_JSON=_get_bool_env("LOG_JSON", default=False),
        )


# Global settings instance
settings = Settings.from_env()
