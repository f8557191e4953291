"""FastAPI routes for the Ledger Statistics API.

This module provides:
- /gross_gaming_rev for gross gaming revenue per currency
- /daily_wager_volume for wagered amounts per day and currency
- /user/{user_id}/wager_percentile for a user's wager percentile
- Health check endpoints
- API key authentication and error handling
"""

from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo import AsyncMongoClient

from src.api.auth import APIKeyAuth
from src.api.health import HealthService, ServiceStatus, create_health_service
from src.cache.base import Cache
from src.cache.keys import parse_rfc3339
from src.cache.memory import MemoryCache
from src.cache.remote import RedisCache
from src.config import Settings
from src.data.aggregator import MongoAggregator
from src.data.models import (
    DailyWagerVolumeResponse,
    ErrorResponse,
    GGRResponse,
    Timeframe,
    WagerPercentileResponse,
)
from src.errors import CacheConnectionError, StatisticsError
from src.services.statistics import TransactionStatisticsService

logger = structlog.get_logger(__name__)

INVALID_DATE_MESSAGE = "Invalid date format. Use ISO 8601 (YYYY-MM-DDThh:mm:ssZ)"


# ============================================================================
# Wiring
# ============================================================================


async def build_cache(settings: Settings) -> Cache:
    """Create the configured cache backend.

    Falls back to the in-process cache when Redis cannot be reached, since
    the cache only affects latency.

    Args:
        settings: Application settings.

    Returns:
        Ready-to-use cache backend.
    """
    if settings.CACHE_BACKEND == "redis":
        try:
            return await RedisCache.from_url(
                settings.REDIS_URL,
                operation_timeout=settings.REDIS_OPERATION_TIMEOUT,
                connect_timeout=settings.REDIS_CONNECT_TIMEOUT,
            )
        except CacheConnectionError as e:
            logger.warning(
                "redis_unavailable_using_memory_cache", error=e.message, url=e.url
            )

    cache = MemoryCache(sweep_interval=settings.CACHE_SWEEP_INTERVAL_SECONDS)
    cache.start()
    return cache


def _parse_timeframe(from_: str | None, to: str | None) -> Timeframe:
    if not from_ or not to:
        raise HTTPException(status_code=400, detail=INVALID_DATE_MESSAGE)
    try:
        start, end = parse_rfc3339(from_), parse_rfc3339(to)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=INVALID_DATE_MESSAGE) from e

    try:
        return Timeframe(from_=start, to=end)
    except ValidationError as e:
        message = "; ".join(error["msg"] for error in e.errors())
        raise HTTPException(status_code=400, detail=f"Validation error: {message}") from e


def error_context(exc: Exception) -> dict[str, Any]:
    """Log fields describing a failed computation."""
    if isinstance(exc, StatisticsError):
        return exc.to_dict()
    return {"error_type": type(exc).__name__, "message": str(exc)}


def get_timeframe(
    from_: str | None = Query(default=None, alias="from", description="Range start, ISO 8601"),
    to: str | None = Query(default=None, description="Range end, ISO 8601"),
) -> Timeframe:
    """Parse and validate the from/to query parameters."""
    return _parse_timeframe(from_, to)


def get_statistics_service(request: Request) -> TransactionStatisticsService:
    """Return the statistics service attached to the application."""
    service: TransactionStatisticsService = request.app.state.statistics_service
    return service


# ============================================================================
# Routes
# ============================================================================


def create_statistics_router(api_key: str) -> APIRouter:
    """Create the authenticated statistics router.

    Args:
        api_key: Value expected in the Authorization header.

    Returns:
        Router with the three statistics endpoints.
    """
    router = APIRouter(
        tags=["Statistics"],
        dependencies=[Depends(APIKeyAuth(api_key))],
        responses={
            400: {"description": "Invalid request", "model": ErrorResponse},
            401: {"description": "Missing or invalid API key", "model": ErrorResponse},
            500: {"description": "Internal error", "model": ErrorResponse},
        },
    )

    @router.get("/gross_gaming_rev", response_model=GGRResponse)
    async def gross_gaming_revenue(
        timeframe: Timeframe = Depends(get_timeframe),
        service: TransactionStatisticsService = Depends(get_statistics_service),
    ) -> GGRResponse:
        """Gross gaming revenue (wagers minus payouts) per currency."""
        try:
            rows = await service.calculate_ggr(timeframe.from_, timeframe.to)
        except Exception as e:
            logger.error("ggr_failed", **error_context(e))
            raise HTTPException(status_code=500, detail=f"Failed to calculate GGR: {e!s}") from e

        return GGRResponse(timeframe=timeframe.to_output(), data=rows)

    @router.get("/daily_wager_volume", response_model=DailyWagerVolumeResponse)
    async def daily_wager_volume(
        timeframe: Timeframe = Depends(get_timeframe),
        service: TransactionStatisticsService = Depends(get_statistics_service),
    ) -> DailyWagerVolumeResponse:
        """Wagered amount per day and currency."""
        try:
            rows = await service.calculate_daily_wager_volume(timeframe.from_, timeframe.to)
        except Exception as e:
            logger.error("daily_wager_volume_failed", **error_context(e))
            raise HTTPException(
                status_code=500, detail=f"Failed to calculate daily wager volume: {e!s}"
            ) from e

        return DailyWagerVolumeResponse(timeframe=timeframe.to_output(), data=rows)

    @router.get("/user/{user_id}/wager_percentile", response_model=WagerPercentileResponse)
    async def user_wager_percentile(
        user_id: str,
        timeframe: Timeframe = Depends(get_timeframe),
        service: TransactionStatisticsService = Depends(get_statistics_service),
    ) -> WagerPercentileResponse:
        """A user's percentile rank by total wagered USD."""
        if not user_id.strip():
            raise HTTPException(status_code=400, detail="User ID is required")

        try:
            percentile = await service.calculate_user_wager_percentile(
                user_id, timeframe.from_, timeframe.to
            )
        except Exception as e:
            logger.error("user_wager_percentile_failed", user_id=user_id, **error_context(e))
            raise HTTPException(
                status_code=500, detail=f"Failed to calculate user wager percentile: {e!s}"
            ) from e

        return WagerPercentileResponse(
            user_id=user_id,
            percentile=percentile,
            timeframe=timeframe.to_output(),
        )

    return router


def register_health_routes(app: FastAPI) -> None:
    """Register liveness and readiness checks (unauthenticated)."""

    @app.get("/health", tags=["Health"])
    async def health() -> dict[str, Any]:
        """Basic liveness check."""
        health_service: HealthService = app.state.health_service
        return await health_service.liveness()

    @app.get("/health/ready", tags=["Health"])
    async def readiness() -> JSONResponse:
        """Readiness check of MongoDB and the cache backend."""
        health_service: HealthService = app.state.health_service
        service: TransactionStatisticsService | None = getattr(
            app.state, "statistics_service", None
        )
        result = await health_service.readiness(
            cache_metrics=service.metrics.to_dict() if service else None
        )
        status_code = 200 if result.status != ServiceStatus.NOT_READY else 503
        return JSONResponse(content=result.to_dict(), status_code=status_code)


# ============================================================================
# Application Setup
# ============================================================================


def create_app(
    service: TransactionStatisticsService | None = None,
    settings: Settings | None = None,
    health_service: HealthService | None = None,
    title: str = "Ledger Statistics API",
    version: str = "1.0.0",
) -> FastAPI:
    """Create and configure the FastAPI application.

    When no service is given, the lifespan handler connects to MongoDB and
    the configured cache and closes them on shutdown.

    Args:
        service: Pre-built statistics service (used by tests).
        settings: Application settings (read from the environment if omitted).
        health_service: Pre-built health service.
        title: API title.
        version: API version.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("application_starting")
        mongo_client: AsyncMongoClient | None = None
        cache: Cache | None = None

        if getattr(app.state, "statistics_service", None) is None:
            mongo_client = AsyncMongoClient(settings.MONGODB_URI)
            collection = mongo_client[settings.MONGODB_DATABASE][settings.MONGODB_COLLECTION]
            cache = await build_cache(settings)
            app.state.statistics_service = TransactionStatisticsService(
                MongoAggregator(collection),
                cache,
                ttl=settings.CACHE_TTL_SECONDS,
            )
            app.state.health_service = create_health_service(
                version=version, mongo_client=mongo_client, cache=cache
            )
            logger.info(
                "statistics_service_ready",
                cache_backend=type(cache).__name__,
                database=settings.MONGODB_DATABASE,
            )

        yield

        logger.info("application_shutting_down")
        if cache is not None:
            await cache.close()
        if mongo_client is not None:
            await mongo_client.close()

    app = FastAPI(
        title=title,
        version=version,
        description="Read-only analytics over the transaction ledger.",
        lifespan=lifespan,
    )
    app.state.statistics_service = service
    app.state.health_service = health_service or create_health_service(
        version=version, cache=service.cache if service else None
    )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException  # noqa: ARG001
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=exc.detail if isinstance(exc.detail, str) else str(exc.detail),
                detail=None,
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception  # noqa: ARG001
    ) -> JSONResponse:
        logger.error("unhandled_exception", error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="Internal server error").model_dump(),
        )

    app.include_router(create_statistics_router(settings.API_KEY))
    register_health_routes(app)

    return app
