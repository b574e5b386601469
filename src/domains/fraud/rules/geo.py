"""Geography-based fraud detection rules."""

import structlog

from ..models import FraudViolation
from .base import RuleContext, fraud_rule

logger = structlog.get_logger()


@fraud_rule("geographic_anomaly", category="geo")
async def geographic_anomaly(ctx: RuleContext) -> FraudViolation | None:
    """Country hopping first, then first-time countries for new or established users."""
    cfg = ctx.config.geo
    txn = ctx.transaction
    country = txn.country
    if not country:
        return None

    distinct = await ctx.history.count_distinct_countries(
        txn.user_id, txn.created_at, exclude_id=txn.transaction_id
    )
    if distinct > cfg.max_distinct_countries:
        logger.warning(
            "country_hopping_detected",
            user_id=txn.user_id,
            distinct_countries=distinct,
            max_countries=cfg.max_distinct_countries,
        )
        return FraudViolation(
            rule_id="GEOGRAPHIC_COUNTRY_HOPPING",
            description=(
                f"Excessive country usage: {distinct} distinct countries "
                f"(max: {cfg.max_distinct_countries})"
            ),
            risk_score=cfg.country_hopping_risk,
        )

    seen = await ctx.history.has_transacted_in_country(
        txn.user_id, country, txn.created_at, exclude_id=txn.transaction_id
    )
    if seen:
        return None

    if ctx.profile.is_new_user:
        logger.warning("new_country_detected", user_id=txn.user_id, country=country, new_user=True)
        return FraudViolation(
            rule_id="GEOGRAPHIC_NEW_USER_NEW_COUNTRY",
            description=f"New user transacting from new country: {country}",
            risk_score=cfg.new_user_new_country_risk,
        )

    if ctx.profile.is_established:
        logger.info("new_country_detected", user_id=txn.user_id, country=country, new_user=False)
        return FraudViolation(
            rule_id="GEOGRAPHIC_NEW_COUNTRY",
            description=f"First transaction from country: {country}",
            risk_score=cfg.new_country_risk,
        )

    return None


@fraud_rule("impossible_travel", category="geo")
async def impossible_travel(ctx: RuleContext) -> FraudViolation | None:
    """Consecutive located transactions implying a faster-than-flight speed."""
    cfg = ctx.config.geo
    txn = ctx.transaction
    if not txn.has_geographic_data:
        return None

    previous = await ctx.history.most_recent_with_location(
        txn.user_id, txn.created_at, exclude_id=txn.transaction_id
    )
    if previous is None or previous.transaction_id == txn.transaction_id:
        return None

    distance = txn.distance_km_to(previous.geo_location.latitude, previous.geo_location.longitude)
    if distance < cfg.min_distance_km:
        return None

    hours = (txn.created_at - previous.created_at).total_seconds() / 3600
    if hours <= 0:
        return None

    speed = distance / hours
    if speed <= cfg.max_realistic_speed_kmh:
        return None

    risk = min(
        cfg.travel_base_risk + (speed / cfg.max_realistic_speed_kmh) * cfg.travel_risk_factor,
        cfg.travel_risk_cap,
    )
    logger.warning(
        "impossible_travel_detected",
        user_id=txn.user_id,
        distance_km=round(distance, 1),
        hours=round(hours, 2),
        speed_kmh=round(speed, 1),
        previous_transaction_id=previous.transaction_id,
    )
    return FraudViolation(
        rule_id="IMPOSSIBLE_TRAVEL",
        description=(
            f"Impossible travel: {distance:.0f} km in {hours:.1f} hours "
            f"({speed:.0f} km/h required, max realistic: {cfg.max_realistic_speed_kmh:.0f} km/h)"
        ),
        risk_score=risk,
    )
