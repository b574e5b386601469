"""Fraud detection configuration with sensible defaults.

Every threshold and weight here is fixed policy, not learned. Env var
overrides exist so operators can tune a deployment without a release.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal


@dataclass
class AmountThresholds:
    high_amount_min: Decimal = Decimal("10000")
    high_amount_risk: float = 0.8
    new_user_limit: Decimal = Decimal("500")
    new_user_risk: float = 0.5
    deviation_threshold: float = 0.5
    deviation_risk_factor: float = 0.5
    deviation_risk_cap: float = 0.7
    spike_baseline_days: int = 30
    extreme_spike_multiplier: float = 5.0
    extreme_spike_risk: float = 0.85
    high_spike_multiplier: float = 3.0
    high_spike_risk: float = 0.65
    zscore_threshold: float = 3.0
    zscore_risk: float = 0.55


@dataclass
class VelocityThresholds:
    # (window minutes, max transactions, risk) in priority order
    windows: tuple[tuple[int, int, float], ...] = (
        (5, 3, 0.9),
        (15, 8, 0.75),
        (60, 20, 0.6),
    )
    odd_hour_end: int = 5
    odd_hour_history_max: int = 20
    odd_hour_risk: float = 0.6


@dataclass
class GeoThresholds:
    max_realistic_speed_kmh: float = 1000.0
    min_distance_km: float = 50.0
    travel_base_risk: float = 0.5
    travel_risk_factor: float = 0.3
    travel_risk_cap: float = 0.95
    max_distinct_countries: int = 5
    country_hopping_risk: float = 0.65
    new_user_new_country_risk: float = 0.75
    new_country_risk: float = 0.5


@dataclass
class ProfileThresholds:
    high_risk_categories: tuple[str, ...] = ("GAMBLING", "CRYPTO", "ADULT_ENTERTAINMENT")
    high_risk_category_risk: float = 0.9
    international_history_max: int = 5
    international_risk: float = 0.7
    unused_category_history_min: int = 5
    unused_category_risk: float = 0.3
    common_category_min_count: int = 3


@dataclass
class EnsembleSettings:
    model_weights: tuple[float, ...] = (0.3, 0.2, 0.2, 0.15, 0.15)
    model_fraud_threshold: float = 0.6
    model_weight: float = 0.4
    rule_weight: float = 0.6
    violation_boost: float = 0.1
    violation_boost_cap: float = 0.3
    block_threshold: float = 0.8
    review_threshold: float = 0.6
    monitor_threshold: float = 0.3
    feature_timezone: str = "UTC"


@dataclass
class ExplainSettings:
    baseline_probability: float = 0.05
    feature_weights: tuple[float, ...] = (0.25, 0.20, 0.15, 0.20, 0.20)
    top_factor_limit: int = 3
    rule_factor_min_risk: float = 0.5


@dataclass
class TrackerSettings:
    capacity: int = 10_000
    min_labeled: int = 10
    default_threshold: float = 0.5
    thresholds: tuple[float, ...] = (0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9)
    baseline_auc_roc: float = 0.5
    baseline_auc_pr: float = 0.05


@dataclass
class FraudConfig:
    amount: AmountThresholds = field(default_factory=AmountThresholds)
    velocity: VelocityThresholds = field(default_factory=VelocityThresholds)
    geo: GeoThresholds = field(default_factory=GeoThresholds)
    profile: ProfileThresholds = field(default_factory=ProfileThresholds)
    ensemble: EnsembleSettings = field(default_factory=EnsembleSettings)
    explain: ExplainSettings = field(default_factory=ExplainSettings)
    tracker: TrackerSettings = field(default_factory=TrackerSettings)

    @classmethod
    def from_env(cls) -> "FraudConfig":
        """Load config with env var overrides. Env vars use FRAUD_ prefix."""
        config = cls()

        # Amount overrides
        if v := os.getenv("FRAUD_HIGH_AMOUNT_MIN"):
            config.amount.high_amount_min = Decimal(v)
        if v := os.getenv("FRAUD_NEW_USER_LIMIT"):
            config.amount.new_user_limit = Decimal(v)
        if v := os.getenv("FRAUD_SPIKE_BASELINE_DAYS"):
            config.amount.spike_baseline_days = int(v)

        # Geo overrides
        if v := os.getenv("FRAUD_MAX_TRAVEL_SPEED_KMH"):
            config.geo.max_realistic_speed_kmh = float(v)
        if v := os.getenv("FRAUD_MAX_DISTINCT_COUNTRIES"):
            config.geo.max_distinct_countries = int(v)

        # Ensemble overrides
        if v := os.getenv("FRAUD_FEATURE_TIMEZONE"):
            config.ensemble.feature_timezone = v

        # Tracker overrides
        if v := os.getenv("FRAUD_TRACKER_CAPACITY"):
            config.tracker.capacity = int(v)
        if v := os.getenv("FRAUD_TRACKER_MIN_LABELED"):
            config.tracker.min_labeled = int(v)

        return config


# Module-level default instance
default_config = FraudConfig()
