"""Tests for environment-driven settings."""

import pytest

from src.config import Settings


class TestSettings:
    """Tests for Settings.from_env."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Unset variables fall back to defaults."""
        for name in ("CACHE_BACKEND", "CACHE_TTL_SECONDS", "HTTP_PORT", "LOG_JSON"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.CACHE_BACKEND == "redis"
        assert settings.CACHE_TTL_SECONDS == 300.0
        assert settings.HTTP_PORT == 8080
        assert settings.LOG_JSON is False

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment variables override defaults."""
        monkeypatch.setenv("CACHE_BACKEND", "MEMORY")
        monkeypatch.setenv("CACHE_TTL_SECONDS", "30")
        monkeypatch.setenv("HTTP_PORT", "9000")
        monkeypatch.setenv("LOG_JSON", "true")
        monkeypatch.setenv("API_KEY", "k")

        settings = Settings.from_env()

        assert settings.CACHE_BACKEND == "memory"
        assert settings.CACHE_TTL_SECONDS == 30.0
        assert settings.HTTP_PORT == 9000
        assert settings.LOG_JSON is True
        assert settings.API_KEY == "k"

    def test_unparseable_number_uses_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Garbage numeric values fall back to defaults."""
        monkeypatch.setenv("REDIS_OPERATION_TIMEOUT", "soon")

        assert Settings.from_env().REDIS_OPERATION_TIMEOUT == 1.0
