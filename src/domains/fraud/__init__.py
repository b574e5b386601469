"""Fraud risk scoring domain."""

from .config import FraudConfig, default_config
from .ensemble import EnsembleScorer
from .exceptions import RiskAssessmentError
from .explain import ExplanationGenerator
from .features import FraudFeatureExtractor
from .history import InMemoryTransactionHistory, TransactionHistory
from .model import ProbabilisticFraudModel
from .models import (
    FraudAction,
    FraudAssessment,
    FraudExplanation,
    FraudViolation,
    GeoLocation,
    MerchantCategoryFrequency,
    ScoreResult,
    Transaction,
    UserRiskProfile,
)
from .performance import ModelMetrics, ModelPerformanceTracker
from .profile import UserProfileService, compute_merchant_frequency, compute_profile
from .rules import ALL_RULES, FraudRule, RuleContext
from .rules_engine import RulesEngine
from .scorer import FraudAssessmentService

__all__ = [
    "ALL_RULES",
    "EnsembleScorer",
    "ExplanationGenerator",
    "FraudAction",
    "FraudAssessment",
    "FraudAssessmentService",
    "FraudConfig",
    "FraudExplanation",
    "FraudFeatureExtractor",
    "FraudRule",
    "FraudViolation",
    "GeoLocation",
    "InMemoryTransactionHistory",
    "MerchantCategoryFrequency",
    "ModelMetrics",
    "ModelPerformanceTracker",
    "ProbabilisticFraudModel",
    "RiskAssessmentError",
    "RuleContext",
    "RulesEngine",
    "ScoreResult",
    "Transaction",
    "TransactionHistory",
    "UserProfileService",
    "UserRiskProfile",
    "compute_merchant_frequency",
    "compute_profile",
    "default_config",
]
