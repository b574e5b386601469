"""Ensemble scoring: linear model probability blended with rule violations."""

import structlog

from .config import FraudConfig, default_config
from .exceptions import RiskAssessmentError
from .features import FraudFeatureExtractor
from .history import TransactionHistory
from .model import ProbabilisticFraudModel
from .models import MerchantCategoryFrequency, ScoreResult, Transaction, UserRiskProfile
from .rules import RuleContext
from .rules_engine import RulesEngine

logger = structlog.get_logger()


def combine_scores(model_probability: float, rule_probability: float, config: FraudConfig) -> float:
    """Blend model and rules. Pure model score when no rule fired."""
    if rule_probability > 0:
        cfg = config.ensemble
        combined = cfg.model_weight * model_probability + cfg.rule_weight * rule_probability
    else:
        combined = model_probability
    return max(0.0, min(combined, 1.0))


class EnsembleScorer:
    """Scores one transaction into a probability and a discrete action."""

    def __init__(
        self,
        history: TransactionHistory | None = None,
        config: FraudConfig | None = None,
        rules_engine: RulesEngine | None = None,
        model: ProbabilisticFraudModel | None = None,
        feature_extractor: FraudFeatureExtractor | None = None,
    ) -> None:
        self._config = config or default_config
        self._history = history
        self._rules_engine = rules_engine or RulesEngine(config=self._config)
        self._model = model or ProbabilisticFraudModel(config=self._config)
        self._feature_extractor = feature_extractor or FraudFeatureExtractor(config=self._config)

    @property
    def rules_engine(self) -> RulesEngine:
        return self._rules_engine

    async def score(
        self,
        transaction: Transaction,
        profile: UserRiskProfile,
        merchant_frequency: MerchantCategoryFrequency | None = None,
        history: TransactionHistory | None = None,
    ) -> ScoreResult:
        history = history if history is not None else self._history
        if history is None:
            raise RiskAssessmentError("EnsembleScorer.score needs a transaction history")

        features = self._feature_extractor.extract(transaction, profile, merchant_frequency)
        model_probability = max(0.0, min(self._model.predict(features), 1.0))

        ctx = RuleContext(
            transaction=transaction,
            profile=profile,
            merchant_frequency=merchant_frequency,
            history=history,
            config=self._config,
        )
        violations = await self._rules_engine.evaluate(ctx)
        rule_probability = self._rules_engine.calculate_rule_probability(violations)

        probability = combine_scores(model_probability, rule_probability, self._config)
        action = self._rules_engine.determine_action(probability)

        logger.info(
            "transaction_scored",
            transaction_id=transaction.transaction_id,
            user_id=transaction.user_id,
            model_probability=round(model_probability, 4),
            rule_probability=round(rule_probability, 4),
            probability=round(probability, 4),
            action=action.value,
        )

        return ScoreResult(
            transaction_id=transaction.transaction_id,
            model_probability=model_probability,
            rule_probability=rule_probability,
            probability=probability,
            action=action,
            violations=violations,
            features=features,
        )
