"""Velocity and timing rules."""

from datetime import timedelta

import structlog

from ..geo import hour_of_day, window_start
from ..models import FraudViolation
from .base import RuleContext, fraud_rule

logger = structlog.get_logger()

_WINDOW_LABELS = {5: ("VELOCITY_5MIN", "Excessive"), 15: ("VELOCITY_15MIN", "High")}


def _window_label(minutes: int) -> tuple[str, str]:
    if minutes in _WINDOW_LABELS:
        return _WINDOW_LABELS[minutes]
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"VELOCITY_{hours}HOUR", "Elevated"
    return f"VELOCITY_{minutes}MIN", "Elevated"


def _describe_window(minutes: int) -> str:
    if minutes % 60 == 0:
        hours = minutes // 60
        return "1 hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} minutes"


@fraud_rule("velocity", category="velocity")
async def velocity(ctx: RuleContext) -> FraudViolation | None:
    """Transaction bursts. Windows are checked tightest first; the first breach wins."""
    txn = ctx.transaction
    now = txn.created_at

    for minutes, max_count, risk in ctx.config.velocity.windows:
        since = window_start(now, timedelta(minutes=minutes))
        count = await ctx.history.count_since(txn.user_id, since, now)
        if count <= max_count:
            continue

        rule_id, adjective = _window_label(minutes)
        logger.warning(
            "velocity_violation",
            user_id=txn.user_id,
            count=count,
            window_minutes=minutes,
            max_count=max_count,
        )
        return FraudViolation(
            rule_id=rule_id,
            description=(
                f"{adjective} velocity: {count} transactions in "
                f"{_describe_window(minutes)} (max: {max_count})"
            ),
            risk_score=risk,
        )

    return None


@fraud_rule("odd_hour_activity", category="velocity")
async def odd_hour_activity(ctx: RuleContext) -> FraudViolation | None:
    """Late-night (UTC) activity from users with limited history."""
    cfg = ctx.config.velocity
    hour = hour_of_day(ctx.transaction.created_at, "UTC")
    if hour >= cfg.odd_hour_end or ctx.profile.total_transactions >= cfg.odd_hour_history_max:
        return None
    return FraudViolation(
        rule_id="ODD_HOUR_LOW_HISTORY",
        description="Late-night transaction by user with limited history",
        risk_score=cfg.odd_hour_risk,
    )
