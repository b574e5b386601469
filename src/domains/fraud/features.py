"""Normalized model features for one transaction."""

from .config import FraudConfig, default_config
from .geo import hour_of_day
from .models import MerchantCategoryFrequency, Transaction, UserRiskProfile
from .rules.profile import is_high_risk_category

FEATURE_NAMES: tuple[str, ...] = (
    "amount_deviation",
    "merchant_category_risk",
    "temporal_risk",
    "user_history_risk",
    "international_risk",
)

FEATURE_DESCRIPTIONS: tuple[str, ...] = (
    "Transaction amount deviation from user average",
    "Merchant category risk level",
    "Time of transaction risk",
    "User transaction history risk",
    "International transaction risk",
)

# Placeholder value for features that lack the data to say anything
NEUTRAL_VALUE = 0.5


class FraudFeatureExtractor:
    """Extracts the five features the linear model and the explainer share."""

    def __init__(self, config: FraudConfig | None = None) -> None:
        self._config = config or default_config

    def extract(
        self,
        transaction: Transaction,
        profile: UserRiskProfile,
        merchant_frequency: MerchantCategoryFrequency | None = None,
    ) -> list[float]:
        return [
            self._amount_risk(transaction, profile),
            self._merchant_category_risk(transaction, merchant_frequency),
            self._temporal_risk(transaction),
            self._frequency_risk(profile),
            self._international_risk(transaction),
        ]

    def _amount_risk(self, transaction: Transaction, profile: UserRiskProfile) -> float:
        average = profile.average_transaction_amount
        if average == 0:
            return NEUTRAL_VALUE
        return min(abs(transaction.amount_float - average) / average, 1.0)

    def _merchant_category_risk(
        self,
        transaction: Transaction,
        merchant_frequency: MerchantCategoryFrequency | None,
    ) -> float:
        category = transaction.merchant_category
        if is_high_risk_category(category, self._config.profile.high_risk_categories):
            return 1.0
        frequency = merchant_frequency.frequency(category) if merchant_frequency and category else 0
        return 0.7 if frequency < self._config.profile.common_category_min_count else 0.3

    def _temporal_risk(self, transaction: Transaction) -> float:
        hour = hour_of_day(transaction.created_at, self._config.ensemble.feature_timezone)
        if hour < 5 or hour > 22:
            return 1.0
        return 0.2

    def _frequency_risk(self, profile: UserRiskProfile) -> float:
        if profile.total_transactions < 10:
            return 0.8
        if profile.total_transactions < 50:
            return NEUTRAL_VALUE
        return 0.2

    def _international_risk(self, transaction: Transaction) -> float:
        return 0.7 if transaction.is_international else 0.2
