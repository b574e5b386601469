"""Rules over the merchant category and the user's profile history."""

from ..models import FraudViolation
from .base import RuleContext, fraud_rule


def is_high_risk_category(category: str | None, high_risk: tuple[str, ...]) -> bool:
    return category is not None and category.upper() in high_risk


@fraud_rule("high_risk_merchant_category", category="profile")
async def high_risk_merchant_category(ctx: RuleContext) -> FraudViolation | None:
    cfg = ctx.config.profile
    category = ctx.transaction.merchant_category
    if not is_high_risk_category(category, cfg.high_risk_categories):
        return None
    return FraudViolation(
        rule_id="HIGH_RISK_CATEGORY",
        description=f"Transaction in high-risk merchant category: {category}",
        risk_score=cfg.high_risk_category_risk,
    )


@fraud_rule("international_low_history", category="profile")
async def international_low_history(ctx: RuleContext) -> FraudViolation | None:
    cfg = ctx.config.profile
    if not ctx.transaction.is_international:
        return None
    if ctx.profile.total_transactions > cfg.international_history_max:
        return None
    return FraudViolation(
        rule_id="INTERNATIONAL_NEW_USER",
        description=(
            f"International transaction by user with <= {cfg.international_history_max} "
            "prior transactions"
        ),
        risk_score=cfg.international_risk,
    )


@fraud_rule("unused_merchant_category", category="profile")
async def unused_merchant_category(ctx: RuleContext) -> FraudViolation | None:
    """Established users buying in a category they rarely or never use."""
    cfg = ctx.config.profile
    category = ctx.transaction.merchant_category
    frequency = ctx.merchant_frequency
    if category is None or frequency is None:
        return None
    if frequency.is_category_common(category):
        return None
    if ctx.profile.total_transactions <= cfg.unused_category_history_min:
        return None
    return FraudViolation(
        rule_id="UNUSED_CATEGORY",
        description="Transaction in merchant category never used by this user",
        risk_score=cfg.unused_category_risk,
    )
