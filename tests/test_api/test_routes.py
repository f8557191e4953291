"""Tests for FastAPI routes."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from src.api.auth import UNAUTHORIZED_MESSAGE
from src.api.health import HealthService, MongoDBHealthChecker
from src.api.routes import INVALID_DATE_MESSAGE, build_cache, create_app, error_context
from src.cache.memory import MemoryCache
from src.cache.remote import RedisCache
from src.config import Settings
from src.errors import AggregationError, CacheConnectionError
from src.services.statistics import TransactionStatisticsService

API_KEY = "secret-key"
RANGE = {"from": "2023-01-01T00:00:00Z", "to": "2023-01-31T00:00:00Z"}

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings with a known API key."""
    return Settings(API_KEY=API_KEY, CACHE_BACKEND="memory")


@pytest.fixture
def service(counting_aggregator, recording_cache) -> TransactionStatisticsService:
    """Statistics service over test doubles."""
    return TransactionStatisticsService(counting_aggregator, recording_cache)


@pytest.fixture
def app(service, settings):
    """Create test FastAPI app with an injected service."""
    return create_app(service=service, settings=settings, title="Test API", version="0.1.0")


@pytest.fixture
def client(app):
    """Create test client."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def headers() -> dict[str, str]:
    """Valid authorization header."""
    return {"Authorization": API_KEY}


# ============================================================================
# Authentication
# ============================================================================


class TestAuthentication:
    """Tests for API key enforcement."""

    @pytest.mark.parametrize(
        "path",
        ["/gross_gaming_rev", "/daily_wager_volume", "/user/user-1/wager_percentile"],
    )
    def test_missing_key(self, client, path) -> None:
        """Requests without a key are rejected."""
        response = client.get(path, params=RANGE)

        assert response.status_code == 401
        assert response.json() == {"error": UNAUTHORIZED_MESSAGE, "detail": None}

    def test_wrong_key(self, client, counting_aggregator) -> None:
        """Requests with the wrong key never reach the service."""
        response = client.get(
            "/gross_gaming_rev", params=RANGE, headers={"Authorization": "wrong"}
        )

        assert response.status_code == 401
        assert counting_aggregator.ggr_calls == []

    def test_health_is_public(self, client) -> None:
        """Health checks need no key."""
        assert client.get("/health").status_code == 200


# ============================================================================
# Date Validation
# ============================================================================


class TestDateValidation:
    """Tests for from/to parsing."""

    @pytest.mark.parametrize(
        "params",
        [
            {},
            {"from": "2023-01-01T00:00:00Z"},
            {"to": "2023-01-31T00:00:00Z"},
            {"from": "January 1st", "to": "2023-01-31T00:00:00Z"},
            {"from": "2023-01-01T00:00:00Z", "to": "2023-13-45"},
            {"from": "2023-01-01", "to": "2023-01-31T00:00:00Z"},
            {"from": "2023-01-01T00:00:00Z", "to": "2023-01-31T00:00:00"},
        ],
    )
    def test_missing_or_malformed_dates(self, client, headers, params) -> None:
        """Missing or unparseable bounds give a 400."""
        response = client.get("/gross_gaming_rev", params=params, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == INVALID_DATE_MESSAGE

    def test_reversed_range(self, client, headers) -> None:
        """to before from is a validation error."""
        response = client.get(
            "/daily_wager_volume",
            params={"from": "2023-02-01T00:00:00Z", "to": "2023-01-01T00:00:00Z"},
            headers=headers,
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error.startswith("Validation error: ")
        assert "'to' must be greater than or equal to 'from'" in error


class TestErrorContext:
    """Tests for error_context."""

    def test_aggregation_error_includes_operation(self) -> None:
        """Domain errors log their structured form."""
        error = AggregationError("timeout", operation="ggr", details={"stage": "$group"})

        assert error_context(error) == {
            "error_type": "AggregationError",
            "message": "timeout",
            "details": {"stage": "$group"},
            "operation": "ggr",
        }

    def test_other_errors(self) -> None:
        """Unexpected errors log their type and message."""
        assert error_context(RuntimeError("boom")) == {
            "error_type": "RuntimeError",
            "message": "boom",
        }


# ============================================================================
# Statistics Endpoints
# ============================================================================


class TestGrossGamingRevenue:
    """Tests for GET /gross_gaming_rev."""

    def test_success(self, client, headers) -> None:
        """Returns the timeframe and per-currency rows."""
        response = client.get("/gross_gaming_rev", params=RANGE, headers=headers)

        assert response.status_code == 200
        assert response.json() == {
            "timeframe": RANGE,
            "data": [{"currency": "BTC", "ggr": 104.5, "ggrUSD": 5225000.0}],
        }

    def test_timeframe_echoed_in_utc(self, client, headers) -> None:
        """Offsets in the query are normalized in the response."""
        response = client.get(
            "/gross_gaming_rev",
            params={"from": "2023-01-01T02:00:00+02:00", "to": "2023-01-31T00:00:00Z"},
            headers=headers,
        )

        assert response.json()["timeframe"]["from"] == "2023-01-01T00:00:00Z"

    def test_second_request_served_from_cache(self, client, headers, counting_aggregator) -> None:
        """Identical requests hit the aggregator once."""
        client.get("/gross_gaming_rev", params=RANGE, headers=headers)
        client.get("/gross_gaming_rev", params=RANGE, headers=headers)

        assert len(counting_aggregator.ggr_calls) == 1

    def test_aggregation_failure(self, client, headers, counting_aggregator) -> None:
        """Aggregator errors give a 500 with the failing operation."""
        counting_aggregator.ggr_error = AggregationError("timeout", operation="ggr")

        response = client.get("/gross_gaming_rev", params=RANGE, headers=headers)

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to calculate GGR: timeout"


class TestDailyWagerVolume:
    """Tests for GET /daily_wager_volume."""

    def test_success(self, client, headers, counting_aggregator) -> None:
        """Returns rows sorted by date then currency."""
        response = client.get("/daily_wager_volume", params=RANGE, headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["timeframe"] == RANGE
        assert body["data"] == counting_aggregator.daily_result

    def test_aggregation_failure(self, client, headers, counting_aggregator) -> None:
        """Aggregator errors give a 500."""
        counting_aggregator.daily_error = AggregationError("boom", operation="daily_wager_volume")

        response = client.get("/daily_wager_volume", params=RANGE, headers=headers)

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to calculate daily wager volume: boom"


class TestUserWagerPercentile:
    """Tests for GET /user/{user_id}/wager_percentile."""

    def test_success(self, client, headers, counting_aggregator) -> None:
        """Returns the user id, percentile and timeframe."""
        response = client.get("/user/user-1/wager_percentile", params=RANGE, headers=headers)

        assert response.status_code == 200
        assert response.json() == {"userID": "user-1", "percentile": 75.0, "timeframe": RANGE}
        assert counting_aggregator.percentile_calls[0][0] == "user-1"

    def test_blank_user_id(self, client, headers) -> None:
        """Whitespace-only user ids are rejected."""
        response = client.get("/user/%20/wager_percentile", params=RANGE, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == "User ID is required"

    def test_aggregation_failure(self, client, headers, counting_aggregator) -> None:
        """Aggregator errors give a 500."""
        counting_aggregator.percentile_error = AggregationError("down", operation="wager_ranking")

        response = client.get("/user/user-1/wager_percentile", params=RANGE, headers=headers)

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to calculate user wager percentile: down"


# ============================================================================
# Health Endpoints
# ============================================================================


class TestHealthRoutes:
    """Tests for /health and /health/ready."""

    def test_liveness(self, client) -> None:
        """Liveness returns ok."""
        assert client.get("/health").json()["status"] == "ok"

    def test_readiness_includes_cache_metrics(self, client, headers) -> None:
        """Readiness reports hit/miss counters."""
        client.get("/gross_gaming_rev", params=RANGE, headers=headers)

        body = client.get("/health/ready").json()

        assert body["status"] == "ready"
        assert body["cache_metrics"]["misses"] == 1

    def test_readiness_not_ready_returns_503(self, service, settings) -> None:
        """An unhealthy dependency fails the readiness check."""
        health = HealthService()
        health.register_checker(MongoDBHealthChecker(client=None))
        app = create_app(service=service, settings=settings, health_service=health)

        with TestClient(app) as client:
            response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"


# ============================================================================
# Cache Wiring
# ============================================================================


class TestBuildCache:
    """Tests for build_cache."""

    @pytest.mark.asyncio
    async def test_memory_backend(self) -> None:
        """The memory backend starts its sweeper."""
        cache = await build_cache(Settings(CACHE_BACKEND="memory"))
        try:
            assert isinstance(cache, MemoryCache)
            assert cache.running is True
        finally:
            await cache.close()

    @pytest.mark.asyncio
    async def test_redis_backend(self) -> None:
        """The redis backend connects with the configured timeouts."""
        redis_cache = RedisCache(AsyncMock())
        with patch(
            "src.api.routes.RedisCache.from_url", AsyncMock(return_value=redis_cache)
        ) as from_url:
            cache = await build_cache(Settings(CACHE_BACKEND="redis", REDIS_URL="redis://cache:6379/1"))

        assert cache is redis_cache
        from_url.assert_called_once_with(
            "redis://cache:6379/1", operation_timeout=1.0, connect_timeout=5.0
        )

    @pytest.mark.asyncio
    async def test_unreachable_redis_falls_back_to_memory(self) -> None:
        """Startup continues with the in-process cache when Redis is down."""
        with patch(
            "src.api.routes.RedisCache.from_url",
            AsyncMock(side_effect=CacheConnectionError("Redis ping failed: refused")),
        ):
            cache = await build_cache(Settings(CACHE_BACKEND="redis"))
        try:
            assert isinstance(cache, MemoryCache)
        finally:
            await cache.close()
