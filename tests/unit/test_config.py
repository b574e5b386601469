"""Tests for application and fraud configuration."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog

from src.config import Settings
from src.domains.fraud.config import FraudConfig
from src.domains.fraud.history import InMemoryTransactionHistory
from src.domains.fraud.profile import UserProfileService
from src.main import build_fraud_config, create_assessment_service, lifespan
from src.shared.logging import setup_logging


class TestSettings:
    def test_default_settings(self):
        settings = Settings()
        assert settings.app_name == "fraud-risk-core"
        assert settings.app_version == "0.1.0"
        assert settings.tracker_capacity == 10_000

    def test_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("APP_NAME", "test-app")
        monkeypatch.setenv("TRACKER_CAPACITY", "250")
        monkeypatch.setenv("DEBUG", "true")
        settings = Settings()
        assert settings.app_name == "test-app"
        assert settings.tracker_capacity == 250
        assert settings.debug is True

    def test_database_url_default(self):
        settings = Settings()
        assert "postgresql+asyncpg" in settings.database_url


class TestFraudConfig:
    def test_policy_defaults(self):
        config = FraudConfig()
        assert config.amount.high_amount_min == Decimal("10000")
        assert config.velocity.windows[0] == (5, 3, 0.9)
        assert config.ensemble.model_weights == (0.3, 0.2, 0.2, 0.15, 0.15)
        assert sum(config.ensemble.model_weights) == pytest.approx(1.0)
        assert config.explain.feature_weights == (0.25, 0.20, 0.15, 0.20, 0.20)
        assert config.tracker.capacity == 10_000

    def test_from_env_overrides(self, monkeypatch):
        monkeypatch.setenv("FRAUD_HIGH_AMOUNT_MIN", "5000")
        monkeypatch.setenv("FRAUD_MAX_TRAVEL_SPEED_KMH", "900")
        monkeypatch.setenv("FRAUD_FEATURE_TIMEZONE", "Europe/Paris")
        monkeypatch.setenv("FRAUD_TRACKER_MIN_LABELED", "20")
        config = FraudConfig.from_env()
        assert config.amount.high_amount_min == Decimal("5000")
        assert config.geo.max_realistic_speed_kmh == 900.0
        assert config.ensemble.feature_timezone == "Europe/Paris"
        assert config.tracker.min_labeled == 20

    def test_instances_independent(self):
        a, b = FraudConfig(), FraudConfig()
        a.amount.high_amount_min = Decimal("1")
        assert b.amount.high_amount_min == Decimal("10000")


class TestWiring:
    def test_settings_fill_unset_fraud_values(self):
        config = build_fraud_config(Settings(tracker_capacity=50, timezone="Asia/Tokyo"))
        assert config.tracker.capacity == 50
        assert config.ensemble.feature_timezone == "Asia/Tokyo"

    def test_fraud_env_wins(self, monkeypatch):
        monkeypatch.setenv("FRAUD_TRACKER_CAPACITY", "75")
        config = build_fraud_config(Settings(tracker_capacity=50))
        assert config.tracker.capacity == 75

    def test_create_service(self):
        history = InMemoryTransactionHistory()
        service = create_assessment_service(history, Settings(tracker_capacity=5))
        assert service.tracker is not None

    def test_setup_logging(self):
        setup_logging("DEBUG", json_logs=True)
        structlog.get_logger().info("logging_configured", check=True)
        setup_logging("INFO")


class TestLifespan:
    @pytest.mark.asyncio
    async def test_commits_on_clean_exit(self, monkeypatch):
        from src.db import database
        from src.domains.fraud.repository import SqlTransactionHistory

        session = AsyncMock()
        session_cm = MagicMock()
        session_cm.__aenter__.return_value = session
        session_cm.__aexit__.return_value = False
        monkeypatch.setattr(database, "init_db", AsyncMock())
        monkeypatch.setattr(database, "get_session_factory", lambda: lambda: session_cm)

        async with lifespan(Settings()) as service:
            assert isinstance(service.profiles, UserProfileService)
            assert isinstance(service._history, SqlTransactionHistory)

        database.init_db.assert_awaited_once()
        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rolls_back_on_error(self, monkeypatch):
        from src.db import database

        session = AsyncMock()
        session_cm = MagicMock()
        session_cm.__aenter__.return_value = session
        session_cm.__aexit__.return_value = False
        monkeypatch.setattr(database, "init_db", AsyncMock())
        monkeypatch.setattr(database, "get_session_factory", lambda: lambda: session_cm)

        with pytest.raises(RuntimeError):
            async with lifespan(Settings()):
                raise RuntimeError("boom")

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()
