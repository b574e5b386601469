"""Fraud detection rules package.

Exports ALL_RULES (the fixed, ordered rule set) and the individual rules
for direct use.
"""

from .amount import amount_spike, high_amount, new_user_onboarding, unusual_deviation
from .base import FraudRule, RuleContext, fraud_rule
from .geo import geographic_anomaly, impossible_travel
from .profile import (
    high_risk_merchant_category,
    international_low_history,
    is_high_risk_category,
    unused_merchant_category,
)
from .velocity import odd_hour_activity, velocity

# All rules in evaluation order
ALL_RULES: tuple[FraudRule, ...] = (
    # Snapshot rules
    high_amount,
    high_risk_merchant_category,
    international_low_history,
    odd_hour_activity,
    new_user_onboarding,
    unusual_deviation,
    unused_merchant_category,
    # History-backed rules
    velocity,
    amount_spike,
    geographic_anomaly,
    impossible_travel,
)

__all__ = [
    "ALL_RULES",
    "FraudRule",
    "RuleContext",
    "fraud_rule",
    "is_high_risk_category",
    # Amount
    "high_amount",
    "new_user_onboarding",
    "unusual_deviation",
    "amount_spike",
    # Velocity
    "velocity",
    "odd_hour_activity",
    # Geo
    "geographic_anomaly",
    "impossible_travel",
    # Profile
    "high_risk_merchant_category",
    "international_low_history",
    "unused_merchant_category",
]
