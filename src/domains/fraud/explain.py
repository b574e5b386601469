"""SHAP-style explanations for ensemble fraud decisions.

Each feature contribution estimates how far that feature moved the final
probability away from the baseline fraud rate. Rule violations are listed
alongside with a severity bucket, and the confidence score rewards
complete feature data and agreement between the model and the rules.
"""

from collections.abc import Sequence

import structlog

from .config import FraudConfig, default_config
from .ensemble import EnsembleScorer
from .features import FEATURE_DESCRIPTIONS, FEATURE_NAMES, NEUTRAL_VALUE
from .history import TransactionHistory
from .models import (
    FeatureContribution,
    FraudAction,
    FraudExplanation,
    FraudViolation,
    Impact,
    MerchantCategoryFrequency,
    RuleExplanation,
    ScoreResult,
    Severity,
    Transaction,
    UserRiskProfile,
)

logger = structlog.get_logger()

_DECISION_TEMPLATES = {
    FraudAction.BLOCK: "Transaction BLOCKED: High fraud probability ({pct:.0f}%) exceeds safety threshold",
    FraudAction.REVIEW: "Transaction requires REVIEW: Elevated fraud probability ({pct:.0f}%) detected",
    FraudAction.MONITOR: "Transaction APPROVED with monitoring: Low-moderate risk ({pct:.0f}%)",
    FraudAction.APPROVE: "Transaction APPROVED: Low fraud probability ({pct:.0f}%)",
}


def categorize_impact(contribution: float, value: float) -> Impact:
    if contribution > 0.15 or value > 0.8:
        return Impact.HIGH_RISK
    if contribution > 0.05 or value > 0.6:
        return Impact.MODERATE_RISK
    if contribution > 0 or value > 0.4:
        return Impact.LOW_RISK
    return Impact.NEUTRAL


def categorize_severity(risk_score: float) -> Severity:
    if risk_score >= 0.9:
        return Severity.CRITICAL
    if risk_score >= 0.7:
        return Severity.HIGH
    if risk_score >= 0.5:
        return Severity.MEDIUM
    return Severity.LOW


def format_rule_name(rule_id: str) -> str:
    """``IMPOSSIBLE_TRAVEL`` -> ``Impossible travel``."""
    return rule_id.replace("_", " ").lower().capitalize()


def decision_reason(action: FraudAction, probability: float) -> str:
    return _DECISION_TEMPLATES[action].format(pct=probability * 100)


class ExplanationGenerator:
    """Builds a ``FraudExplanation`` from the ensemble's inputs and output."""

    def __init__(
        self,
        scorer: EnsembleScorer | None = None,
        config: FraudConfig | None = None,
    ) -> None:
        self._config = config or default_config
        self._scorer = scorer

    async def explain(
        self,
        transaction: Transaction,
        profile: UserRiskProfile,
        merchant_frequency: MerchantCategoryFrequency | None = None,
        history: TransactionHistory | None = None,
    ) -> FraudExplanation:
        """Score the transaction and explain the result."""
        if self._scorer is None:
            raise RuntimeError("ExplanationGenerator.explain needs an EnsembleScorer")
        result = await self._scorer.score(transaction, profile, merchant_frequency, history)
        return self.explain_score(result)

    def explain_score(self, result: ScoreResult) -> FraudExplanation:
        """Explain an existing score without re-running the rules."""
        cfg = self._config.explain
        contributions = self.feature_contributions(result.features, result.probability)
        rule_explanations = [self._rule_explanation(v) for v in result.violations]
        confidence = self.confidence(
            result.features, result.model_probability, result.rule_probability
        )

        explanation = FraudExplanation(
            baseline_probability=cfg.baseline_probability,
            final_probability=result.probability,
            feature_contributions=contributions,
            rule_explanations=rule_explanations,
            top_risk_factors=self._top_risk_factors(contributions, rule_explanations),
            decision_reason=decision_reason(result.action, result.probability),
            confidence=confidence,
        )
        logger.debug(
            "fraud_explained",
            transaction_id=result.transaction_id,
            confidence=round(confidence, 4),
            top_risk_factors=explanation.top_risk_factors,
        )
        return explanation

    def feature_contributions(
        self, features: Sequence[float], final_probability: float
    ) -> list[FeatureContribution]:
        cfg = self._config.explain
        total_shift = final_probability - cfg.baseline_probability
        contributions = []
        for i, value in enumerate(features[: len(cfg.feature_weights)]):
            contribution = (value - NEUTRAL_VALUE) * cfg.feature_weights[i] * total_shift * 2
            contributions.append(
                FeatureContribution(
                    feature_name=FEATURE_NAMES[i],
                    feature_description=FEATURE_DESCRIPTIONS[i],
                    raw_value=value,
                    normalized_value=value,
                    contribution=contribution,
                    impact=categorize_impact(contribution, value),
                )
            )
        return contributions

    def confidence(
        self, features: Sequence[float], model_probability: float, rule_probability: float
    ) -> float:
        completeness = (
            sum(1 for f in features if f != NEUTRAL_VALUE) / len(features) if features else 0.0
        )
        agreement = 1.0 - abs(model_probability - rule_probability)
        return max(0.0, min(0.5 * completeness + 0.5 * agreement, 1.0))

    def _rule_explanation(self, violation: FraudViolation) -> RuleExplanation:
        return RuleExplanation(
            rule_id=violation.rule_id,
            rule_name=format_rule_name(violation.rule_id),
            description=violation.description,
            risk_score=violation.risk_score,
            severity=categorize_severity(violation.risk_score),
        )

    def _top_risk_factors(
        self,
        features: list[FeatureContribution],
        rules: list[RuleExplanation],
    ) -> list[str]:
        cfg = self._config.explain
        limit = cfg.top_factor_limit

        factors = [r.description for r in rules if r.risk_score >= cfg.rule_factor_min_risk][:limit]

        ranked = sorted(
            (f for f in features if f.impact in (Impact.HIGH_RISK, Impact.MODERATE_RISK)),
            key=lambda f: f.contribution,
            reverse=True,
        )
        factors.extend(f.feature_description for f in ranked[: limit - len(factors)])
        return factors
