"""Amount-based fraud detection rules."""

from datetime import timedelta

import structlog

from ..models import FraudViolation
from .base import RuleContext, fraud_rule

logger = structlog.get_logger()


@fraud_rule("high_amount", category="amount")
async def high_amount(ctx: RuleContext) -> FraudViolation | None:
    """Single transaction at or above the large-amount threshold."""
    threshold = ctx.config.amount.high_amount_min
    if ctx.transaction.amount < threshold:
        return None
    return FraudViolation(
        rule_id="HIGH_AMOUNT",
        description=f"Transaction amount exceeds ${threshold:,.0f} threshold",
        risk_score=ctx.config.amount.high_amount_risk,
    )


@fraud_rule("new_user_onboarding", category="amount")
async def new_user_onboarding(ctx: RuleContext) -> FraudViolation | None:
    """First transaction over the new-user limit."""
    limit = ctx.config.amount.new_user_limit
    if ctx.profile.total_transactions != 0 or ctx.transaction.amount <= limit:
        return None
    return FraudViolation(
        rule_id="FIRST_TX_HIGH_AMOUNT",
        description=f"First transaction exceeds ${limit:,.0f} new user limit",
        risk_score=ctx.config.amount.new_user_risk,
    )


@fraud_rule("unusual_deviation", category="amount")
async def unusual_deviation(ctx: RuleContext) -> FraudViolation | None:
    """Amount far from the user's lifetime average."""
    cfg = ctx.config.amount
    average = ctx.profile.average_transaction_amount
    if average <= 0:
        return None

    deviation = abs(ctx.transaction.amount_float - average) / average
    if deviation <= cfg.deviation_threshold:
        return None

    return FraudViolation(
        rule_id="UNUSUAL_DEVIATION",
        description=f"Amount deviates {deviation * 100:.1f}% from user average",
        risk_score=min(deviation * cfg.deviation_risk_factor, cfg.deviation_risk_cap),
    )


@fraud_rule("amount_spike", category="amount")
async def amount_spike(ctx: RuleContext) -> FraudViolation | None:
    """Amount spike against the trailing baseline: multiples first, then z-score."""
    cfg = ctx.config.amount
    txn = ctx.transaction
    if ctx.profile.is_new_user:
        return None

    since = txn.created_at - timedelta(days=cfg.spike_baseline_days)
    avg = await ctx.history.average_amount_since(txn.user_id, since, txn.created_at)
    if avg is None or avg <= 0:
        return None

    amount = txn.amount_float
    multiplier = amount / avg

    if amount > avg * cfg.extreme_spike_multiplier:
        logger.warning(
            "amount_spike_detected",
            user_id=txn.user_id,
            amount=amount,
            baseline_avg=avg,
            multiplier=multiplier,
            level="extreme",
        )
        return FraudViolation(
            rule_id="AMOUNT_EXTREME_SPIKE",
            description=(
                f"Extreme amount spike: ${amount:,.2f} vs {cfg.spike_baseline_days}-day "
                f"average ${avg:,.2f} ({multiplier:.1f}x higher)"
            ),
            risk_score=cfg.extreme_spike_risk,
        )

    if amount > avg * cfg.high_spike_multiplier:
        logger.info(
            "amount_spike_detected",
            user_id=txn.user_id,
            amount=amount,
            baseline_avg=avg,
            multiplier=multiplier,
            level="high",
        )
        return FraudViolation(
            rule_id="AMOUNT_HIGH_SPIKE",
            description=(
                f"High amount spike: ${amount:,.2f} vs {cfg.spike_baseline_days}-day "
                f"average ${avg:,.2f} ({multiplier:.1f}x higher)"
            ),
            risk_score=cfg.high_spike_risk,
        )

    stddev = await ctx.history.stddev_amount_since(txn.user_id, since, txn.created_at)
    if not stddev or stddev <= 0:
        return None

    zscore = (amount - avg) / stddev
    if zscore <= cfg.zscore_threshold:
        return None

    logger.info("amount_statistical_anomaly", user_id=txn.user_id, zscore=zscore, amount=amount)
    return FraudViolation(
        rule_id="AMOUNT_STATISTICAL_ANOMALY",
        description=(
            f"Statistical anomaly: ${amount:,.2f} is {zscore:.1f} standard deviations above mean"
        ),
        risk_score=cfg.zscore_risk,
    )
