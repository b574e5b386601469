"""Rule engine: concurrent evaluation of the full rule set plus rule scoring."""

import asyncio

import structlog

from .config import FraudConfig, default_config
from .models import FraudAction, FraudViolation
from .rules import ALL_RULES, FraudRule, RuleContext

logger = structlog.get_logger()


class RulesEngine:
    """Evaluates a transaction against every fraud rule.

    All rules see the same ``RuleContext`` and run concurrently. The engine
    waits for every rule before aggregating, and returns violations in rule
    registry order so the result never depends on completion order.
    """

    def __init__(
        self,
        config: FraudConfig | None = None,
        rules: tuple[FraudRule, ...] | None = None,
    ) -> None:
        self._config = config or default_config
        self._rules = tuple(rules) if rules is not None else ALL_RULES
        logger.info("rules_engine_initialized", rule_count=len(self._rules))

    @property
    def rules(self) -> tuple[FraudRule, ...]:
        return self._rules

    async def _run_rule(self, rule: FraudRule, ctx: RuleContext) -> FraudViolation | None:
        try:
            return await rule(ctx)
        except Exception:
            logger.exception(
                "rule_evaluation_error",
                rule_id=rule.rule_id,
                transaction_id=ctx.transaction.transaction_id,
            )
            return None

    async def evaluate(self, ctx: RuleContext) -> list[FraudViolation]:
        """Run every rule and collect all violations (not just the first)."""
        results = await asyncio.gather(*(self._run_rule(rule, ctx) for rule in self._rules))
        violations = [v for v in results if v is not None]

        for violation in violations:
            logger.debug(
                "fraud_rule_triggered",
                rule_id=violation.rule_id,
                description=violation.description,
            )

        logger.info(
            "rules_evaluated",
            transaction_id=ctx.transaction.transaction_id,
            user_id=ctx.transaction.user_id,
            triggered_count=len(violations),
            triggered=[v.rule_id for v in violations],
        )
        return violations

    def calculate_rule_probability(self, violations: list[FraudViolation]) -> float:
        """Mean violation risk plus a compound boost for multiple violations."""
        if not violations:
            return 0.0
        cfg = self._config.ensemble
        average = sum(v.risk_score for v in violations) / len(violations)
        boost = min(len(violations) * cfg.violation_boost, cfg.violation_boost_cap)
        return min(average + boost, 1.0)

    def determine_action(self, probability: float) -> FraudAction:
        cfg = self._config.ensemble
        if probability >= cfg.block_threshold:
            return FraudAction.BLOCK
        if probability >= cfg.review_threshold:
            return FraudAction.REVIEW
        if probability >= cfg.monitor_threshold:
            return FraudAction.MONITOR
        return FraudAction.APPROVE
