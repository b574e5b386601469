"""Process entry point: wires settings, logging, storage and the assessment service."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog

from src.config import Settings, settings
from src.domains.fraud.config import FraudConfig
from src.domains.fraud.history import InMemoryTransactionHistory, TransactionHistory
from src.domains.fraud.scorer import FraudAssessmentService
from src.shared.logging import setup_logging

logger = structlog.get_logger()


def build_fraud_config(app_settings: Settings = settings) -> FraudConfig:
    """FraudConfig from FRAUD_* variables, with app-level settings as fallbacks."""
    config = FraudConfig.from_env()
    defaults = FraudConfig()
    if config.tracker.capacity == defaults.tracker.capacity:
        config.tracker.capacity = app_settings.tracker_capacity
    if config.ensemble.feature_timezone == defaults.ensemble.feature_timezone:
        config.ensemble.feature_timezone = app_settings.timezone
    return config


def create_assessment_service(
    history: TransactionHistory | None = None,
    app_settings: Settings = settings,
) -> FraudAssessmentService:
    """In-memory history unless a history is supplied."""
    return FraudAssessmentService(
        history=history if history is not None else InMemoryTransactionHistory(),
        config=build_fraud_config(app_settings),
    )


@asynccontextmanager
async def lifespan(app_settings: Settings = settings) -> AsyncGenerator[FraudAssessmentService, None]:
    """Database-backed service for one unit of work. Commits on clean exit."""
    setup_logging(app_settings.log_level, app_settings.json_logs)
    logger.info(
        "fraud_core_starting",
        app_name=app_settings.app_name,
        version=app_settings.app_version,
        debug=app_settings.debug,
    )

    from src.db.database import get_session_factory, init_db
    from src.domains.fraud.repository import SqlTransactionHistory

    await init_db()

    async with get_session_factory()() as session:
        try:
            yield create_assessment_service(SqlTransactionHistory(session), app_settings)
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    logger.info("fraud_core_stopped")
