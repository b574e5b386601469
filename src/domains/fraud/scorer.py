"""Fraud assessment pipeline: profile -> store -> score -> explain -> track -> recompute."""

import structlog

from .config import FraudConfig, default_config
from .ensemble import EnsembleScorer
from .explain import ExplanationGenerator
from .history import TransactionHistory
from .models import FraudAssessment, Transaction
from .performance import ModelPerformanceTracker
from .profile import UserProfileService

logger = structlog.get_logger()


class FraudAssessmentService:
    """Orchestrates the full fraud assessment for one transaction."""

    def __init__(
        self,
        history: TransactionHistory,
        config: FraudConfig | None = None,
        scorer: EnsembleScorer | None = None,
        tracker: ModelPerformanceTracker | None = None,
        profiles: UserProfileService | None = None,
    ) -> None:
        self._config = config or default_config
        self._history = history
        self._scorer = scorer or EnsembleScorer(history=history, config=self._config)
        self._explainer = ExplanationGenerator(scorer=self._scorer, config=self._config)
        self._tracker = tracker or ModelPerformanceTracker(config=self._config.tracker)
        self._profiles = profiles or UserProfileService(history, config=self._config)

    @property
    def tracker(self) -> ModelPerformanceTracker:
        return self._tracker

    @property
    def profiles(self) -> UserProfileService:
        return self._profiles

    async def assess(self, transaction: Transaction) -> FraudAssessment:
        """Run the full assessment pipeline for a transaction."""
        user_id = transaction.user_id

        # 1. Profile and merchant frequency as of before this transaction
        profile = await self._profiles.get_profile(user_id)
        merchant_frequency = await self._profiles.get_merchant_frequency(user_id)

        # 2. Store first so velocity windows include this transaction
        add = getattr(self._history, "add", None)
        if add is not None:
            await add(transaction)

        # 3. Score and explain
        score = await self._scorer.score(transaction, profile, merchant_frequency, self._history)
        explanation = self._explainer.explain_score(score)

        # 4. Track for later feedback
        self._tracker.record_prediction(
            transaction.transaction_id, score.probability, score.triggered_rule_ids
        )

        # 5. Replace the profile with one that includes this transaction
        await self._profiles.recompute(user_id)

        log = logger.warning if score.action.is_blocking else logger.info
        log(
            "fraud_assessed",
            transaction_id=transaction.transaction_id,
            user_id=user_id,
            probability=round(score.probability, 4),
            action=score.action.value,
            triggered=score.triggered_rule_ids,
        )

        return FraudAssessment(score=score, explanation=explanation)

    def record_feedback(self, transaction_id: str, actual_fraud: bool) -> bool:
        return self._tracker.record_feedback(transaction_id, actual_fraud)
