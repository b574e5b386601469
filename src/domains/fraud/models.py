"""Pydantic models for the fraud domain."""

from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .geo import distance_km


class TransactionType(StrEnum):
    PURCHASE = "PURCHASE"
    TRANSFER = "TRANSFER"
    WITHDRAWAL = "WITHDRAWAL"
    DEPOSIT = "DEPOSIT"
    REFUND = "REFUND"


class GeoLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float | None = None
    longitude: float | None = None
    country: str | None = None
    city: str | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class Transaction(BaseModel):
    """An immutable transaction fact. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str
    user_id: str
    amount: Decimal
    currency: str = "USD"
    merchant_category: str | None = None
    merchant_name: str | None = None
    transaction_type: TransactionType | None = None
    is_international: bool = False
    geo_location: GeoLocation | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # naive timestamps are UTC; history windows compare against aware ones
        if value.tzinfo is None or value.utcoffset() is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def amount_float(self) -> float:
        return float(self.amount)

    @property
    def country(self) -> str | None:
        if self.geo_location is None or not self.geo_location.country:
            return None
        return self.geo_location.country

    @property
    def has_geographic_data(self) -> bool:
        return self.geo_location is not None and self.geo_location.has_coordinates

    def distance_km_to(self, latitude: float | None, longitude: float | None) -> float:
        if not self.has_geographic_data:
            return 0.0
        return distance_km(
            self.geo_location.latitude, self.geo_location.longitude, latitude, longitude
        )


class UserRiskProfile(BaseModel):
    """Risk profile derived wholesale from a user's transaction history.

    Instances are replaced after every transaction, never patched.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    average_transaction_amount: float = 0.0
    total_transactions: int = Field(default=0, ge=0)
    total_transaction_value: float = 0.0
    high_risk_transaction_count: int = 0
    international_transaction_count: int = 0
    behavioral_risk_score: float = Field(default=0.5, ge=0.0, le=1.0)
    transaction_risk_score: float = Field(default=0.5, ge=0.0, le=1.0)
    overall_risk_score: float = Field(default=0.5, ge=0.0, le=1.0)
    first_transaction_date: datetime | None = None
    last_transaction_date: datetime | None = None

    @classmethod
    def new_user(cls, user_id: str) -> "UserRiskProfile":
        return cls(user_id=user_id)

    @property
    def is_new_user(self) -> bool:
        return self.total_transactions <= 2

    @property
    def has_moderate_history(self) -> bool:
        return 2 < self.total_transactions <= 50

    @property
    def is_established(self) -> bool:
        return self.total_transactions > 50


class MerchantCategoryFrequency(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    category_counts: dict[str, int] = Field(default_factory=dict)
    common_min_count: int = 3

    def frequency(self, category: str | None) -> int:
        # keys are stored stripped
        if not category:
            return 0
        return self.category_counts.get(category.strip(), 0)

    @property
    def unique_category_count(self) -> int:
        return len(self.category_counts)

    def is_category_common(self, category: str) -> bool:
        return self.frequency(category) >= self.common_min_count

    @property
    def common_categories(self) -> frozenset[str]:
        return frozenset(c for c in self.category_counts if self.is_category_common(c))


class FraudViolation(BaseModel):
    model_config = ConfigDict(frozen=True)

    rule_id: str
    description: str
    risk_score: float = Field(ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


_ACTION_DESCRIPTIONS = {
    "APPROVE": "Transaction approved",
    "MONITOR": "Monitor transaction - low risk",
    "REVIEW": "Review transaction - moderate risk",
    "BLOCK": "Block transaction - high fraud probability",
}


class FraudAction(StrEnum):
    APPROVE = "APPROVE"
    MONITOR = "MONITOR"
    REVIEW = "REVIEW"
    BLOCK = "BLOCK"

    @property
    def description(self) -> str:
        return _ACTION_DESCRIPTIONS[self.value]

    @property
    def is_blocking(self) -> bool:
        return self is FraudAction.BLOCK

    @property
    def needs_review(self) -> bool:
        return self is FraudAction.REVIEW


class Impact(StrEnum):
    HIGH_RISK = "HIGH_RISK"
    MODERATE_RISK = "MODERATE_RISK"
    LOW_RISK = "LOW_RISK"
    NEUTRAL = "NEUTRAL"


class Severity(StrEnum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ScoreResult(BaseModel):
    """Ensemble output for one transaction."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str
    model_probability: float = Field(ge=0.0, le=1.0)
    rule_probability: float = Field(ge=0.0, le=1.0)
    probability: float = Field(ge=0.0, le=1.0)
    action: FraudAction
    violations: list[FraudViolation] = []
    features: list[float] = []

    @property
    def triggered_rule_ids(self) -> list[str]:
        return [v.rule_id for v in self.violations]


class FeatureContribution(BaseModel):
    model_config = ConfigDict(frozen=True)

    feature_name: str
    feature_description: str
    raw_value: float
    normalized_value: float
    contribution: float  # positive raises fraud risk, negative lowers it
    impact: Impact

    @property
    def explanation(self) -> str:
        direction = "increases" if self.contribution >= 0 else "decreases"
        return (
            f"{self.feature_description} ({self.raw_value:.2f}) {direction} "
            f"fraud risk by {abs(self.contribution * 100):.1f}%"
        )


class RuleExplanation(BaseModel):
    model_config = ConfigDict(frozen=True)

    rule_id: str
    rule_name: str
    description: str
    risk_score: float
    severity: Severity

    @property
    def explanation(self) -> str:
        return (
            f"[{self.severity.value}] {self.rule_name}: {self.description} "
            f"(Risk: {self.risk_score * 100:.0f}%)"
        )


_HIGH_IMPACTS = (Impact.HIGH_RISK, Impact.MODERATE_RISK)


class FraudExplanation(BaseModel):
    """SHAP-style breakdown of one fraud decision. Built once, never changed."""

    model_config = ConfigDict(frozen=True)

    baseline_probability: float
    final_probability: float
    feature_contributions: list[FeatureContribution] = []
    rule_explanations: list[RuleExplanation] = []
    top_risk_factors: list[str] = []
    decision_reason: str
    confidence: float = Field(ge=0.0, le=1.0)

    def features_by_impact(self) -> list[FeatureContribution]:
        return sorted(self.feature_contributions, key=lambda f: abs(f.contribution), reverse=True)

    def high_risk_features(self) -> list[FeatureContribution]:
        return sorted(
            (f for f in self.feature_contributions if f.impact in _HIGH_IMPACTS),
            key=lambda f: f.contribution,
            reverse=True,
        )

    def generate_summary(self) -> str:
        lines = [
            f"Fraud Probability: {self.final_probability * 100:.1f}% "
            f"(Confidence: {self.confidence * 100:.0f}%)",
            f"Decision: {self.decision_reason}",
            "",
        ]
        if self.rule_explanations:
            lines.append("Triggered Rules:")
            lines.extend(f"  - {r.explanation}" for r in self.rule_explanations)
            lines.append("")
        lines.append("Top Risk Factors:")
        lines.extend(f"  - {f.explanation}" for f in self.features_by_impact()[:3])
        return "\n".join(lines) + "\n"

    def to_dict(self) -> dict:
        return {
            "baseline_probability": self.baseline_probability,
            "final_probability": self.final_probability,
            "confidence": self.confidence,
            "decision_reason": self.decision_reason,
            "top_risk_factors": list(self.top_risk_factors),
            "feature_contributions": [
                {
                    "feature": f.feature_name,
                    "description": f.feature_description,
                    "value": f.raw_value,
                    "contribution": f.contribution,
                    "impact": f.impact.value,
                }
                for f in self.feature_contributions
            ],
            "triggered_rules": [
                {
                    "rule_id": r.rule_id,
                    "name": r.rule_name,
                    "description": r.description,
                    "risk_score": r.risk_score,
                    "severity": r.severity.value,
                }
                for r in self.rule_explanations
            ],
        }


class FraudAssessment(BaseModel):
    """Score and explanation for one assessed transaction."""

    score: ScoreResult
    explanation: FraudExplanation

    @property
    def transaction_id(self) -> str:
        return self.score.transaction_id

    @property
    def action(self) -> FraudAction:
        return self.score.action

    @property
    def probability(self) -> float:
        return self.score.probability
