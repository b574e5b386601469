"""Rule contract: a registered async function over one evaluation context."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from ..config import FraudConfig, default_config
from ..history import TransactionHistory
from ..models import FraudViolation, MerchantCategoryFrequency, Transaction, UserRiskProfile


@dataclass(frozen=True)
class RuleContext:
    """Everything a rule may look at. Shared unchanged by every rule of one run."""

    transaction: Transaction
    profile: UserRiskProfile
    merchant_frequency: MerchantCategoryFrequency | None
    history: TransactionHistory
    config: FraudConfig = field(default_factory=lambda: default_config)


RuleFunction = Callable[[RuleContext], Awaitable[FraudViolation | None]]


@dataclass(frozen=True)
class FraudRule:
    """A named rule function. The rule set is a fixed tuple of these."""

    rule_id: str
    category: str  # "amount" | "velocity" | "geo" | "profile"
    evaluate: RuleFunction

    async def __call__(self, ctx: RuleContext) -> FraudViolation | None:
        return await self.evaluate(ctx)


def fraud_rule(rule_id: str, category: str) -> Callable[[RuleFunction], FraudRule]:
    """Wrap an async rule function into a ``FraudRule``."""

    def wrap(fn: RuleFunction) -> FraudRule:
        return FraudRule(rule_id=rule_id, category=category, evaluate=fn)

    return wrap
