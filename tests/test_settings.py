"""
Unit tests for configuration and health checks.
"""
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from card_network.config import Settings
from card_network.monitoring.health import HealthCheck, HealthCheckError


class TestSettings:
    """Test suite for Settings."""

    @pytest.mark.unit
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.lock_backend == "local"
        assert settings.merchant_header == "From"
        assert not settings.uses_sqlite

    @pytest.mark.unit
    def test_environment_prefix(self, monkeypatch: Any) -> None:
        monkeypatch.setenv("CARD_NETWORK_LOCK_BACKEND", "Redis")
        monkeypatch.setenv("CARD_NETWORK_LOG_LEVEL", "debug")
        monkeypatch.setenv("CARD_NETWORK_DATABASE_URL", "sqlite+aiosqlite:///./test.db")

        settings = Settings(_env_file=None)

        assert settings.lock_backend == "redis"
        assert settings.log_level == "DEBUG"
        assert settings.uses_sqlite

    @pytest.mark.unit
    def test_invalid_values(self) -> None:
        with pytest.raises(ValidationError, match="Invalid log level"):
            Settings(_env_file=None, log_level="LOUD")
        with pytest.raises(ValidationError, match="Invalid lock backend"):
            Settings(_env_file=None, lock_backend="zookeeper")

    @pytest.mark.unit
    def test_allowed_origins(self) -> None:
        settings = Settings(_env_file=None, allowed_origins="http://a.test, http://b.test")
        assert settings.get_allowed_origins_list() == ["http://a.test", "http://b.test"]


class TestHealthCheck:
    """Test suite for HealthCheck."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_database_healthy(
        self, test_settings: Settings, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        health = HealthCheck(settings=test_settings, session_factory=session_factory)
        result = await health.check_all()

        assert result["status"] == "healthy"
        assert set(result["checks"]) == {"database"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_redis_checked_for_redis_backend(
        self, test_settings: Settings, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        settings = test_settings.model_copy(update={"lock_backend": "redis"})
        health = HealthCheck(settings=settings, session_factory=session_factory)

        with patch.object(
            HealthCheck, "check_redis", AsyncMock(side_effect=HealthCheckError("down"))
        ):
            result = await health.readiness()

        assert result["status"] == "unhealthy"
        assert result["checks"]["redis"]["status"] == "unhealthy"
        assert result["checks"]["database"]["status"] == "healthy"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_liveness(self, test_settings: Settings) -> None:
        result = await HealthCheck(settings=test_settings).liveness()
        assert result["status"] == "alive"
