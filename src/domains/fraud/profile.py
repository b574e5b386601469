"""Per-user risk profiles rebuilt from transaction history.

Profiles are never patched in place. Every recompute reads the user's full
history and replaces the stored profile, so replaying the same history
always yields the same profile no matter what order it arrives in.
"""

import asyncio
import math
from collections import Counter
from collections.abc import Iterable

import structlog

from .config import FraudConfig, default_config
from .history import TransactionHistory
from .models import MerchantCategoryFrequency, Transaction, UserRiskProfile
from .rules.profile import is_high_risk_category

logger = structlog.get_logger()


def _clamp(value: float) -> float:
    return max(0.0, min(value, 1.0))


def is_high_risk_transaction(transaction: Transaction, config: FraudConfig = default_config) -> bool:
    """High-risk category, very large amount, or international."""
    return (
        is_high_risk_category(transaction.merchant_category, config.profile.high_risk_categories)
        or transaction.amount >= config.amount.high_amount_min
        or transaction.is_international
    )


def behavioral_risk(count: int, international_count: int, distinct_categories: int) -> float:
    risk = 0.5
    if count < 10:
        risk += 0.2
    elif count > 100:
        risk -= 0.1
    if count and international_count / count > 0.3:
        risk += 0.15
    if distinct_categories < 3:
        risk += 0.1
    return _clamp(risk)


def transactional_risk(average: float, maximum: float) -> float:
    if average == 0:
        return 0.5
    return _clamp(0.5 + min((maximum - average) / average * 0.3, 0.5))


def compute_profile(
    user_id: str,
    transactions: Iterable[Transaction],
    config: FraudConfig = default_config,
) -> UserRiskProfile:
    txns = list(transactions)
    if not txns:
        return UserRiskProfile.new_user(user_id)

    # fsum keeps the total exact regardless of input order
    amounts = [t.amount_float for t in txns]
    total_value = math.fsum(amounts)
    count = len(txns)
    average = total_value / count

    international_count = sum(1 for t in txns if t.is_international)
    high_risk_count = sum(1 for t in txns if is_high_risk_transaction(t, config))
    distinct_categories = len(
        {t.merchant_category.strip() for t in txns if t.merchant_category and t.merchant_category.strip()}
    )

    behavioral = behavioral_risk(count, international_count, distinct_categories)
    transactional = transactional_risk(average, max(amounts))

    return UserRiskProfile(
        user_id=user_id,
        average_transaction_amount=average,
        total_transactions=count,
        total_transaction_value=total_value,
        high_risk_transaction_count=high_risk_count,
        international_transaction_count=international_count,
        behavioral_risk_score=behavioral,
        transaction_risk_score=transactional,
        overall_risk_score=_clamp((behavioral + transactional) / 2),
        first_transaction_date=min(t.created_at for t in txns),
        last_transaction_date=max(t.created_at for t in txns),
    )


def compute_merchant_frequency(
    user_id: str,
    transactions: Iterable[Transaction],
    common_min_count: int = 3,
) -> MerchantCategoryFrequency:
    counts = Counter(
        t.merchant_category.strip()
        for t in transactions
        if t.merchant_category and t.merchant_category.strip()
    )
    return MerchantCategoryFrequency(
        user_id=user_id,
        category_counts=dict(sorted(counts.items())),
        common_min_count=common_min_count,
    )


class UserProfileService:
    """Keeps the latest profile and merchant frequency for each user."""

    def __init__(self, history: TransactionHistory, config: FraudConfig | None = None) -> None:
        self._config = config or default_config
        self._history = history
        self._profiles: dict[str, UserRiskProfile] = {}
        self._frequencies: dict[str, MerchantCategoryFrequency] = {}
        # user_id -> (lock, number of tasks holding or waiting on it)
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    def _acquire_slot(self, user_id: str) -> asyncio.Lock:
        lock, users = self._locks.get(user_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[user_id] = (lock, users + 1)
        return lock

    def _release_slot(self, user_id: str) -> None:
        lock, users = self._locks[user_id]
        if users <= 1:
            del self._locks[user_id]
        else:
            self._locks[user_id] = (lock, users - 1)

    @property
    def active_lock_count(self) -> int:
        return len(self._locks)

    async def get_profile(self, user_id: str) -> UserRiskProfile:
        profile = self._profiles.get(user_id)
        if profile is None:
            profile, _ = await self.recompute(user_id)
        return profile

    async def get_merchant_frequency(self, user_id: str) -> MerchantCategoryFrequency:
        frequency = self._frequencies.get(user_id)
        if frequency is None:
            _, frequency = await self.recompute(user_id)
        return frequency

    async def recompute(self, user_id: str) -> tuple[UserRiskProfile, MerchantCategoryFrequency]:
        """Rebuild both values from one snapshot of the user's history."""
        lock = self._acquire_slot(user_id)
        try:
            async with lock:
                transactions = await self._history.transactions_for_user(user_id)
                profile = compute_profile(user_id, transactions, self._config)
                frequency = compute_merchant_frequency(
                    user_id, transactions, self._config.profile.common_category_min_count
                )
                self._profiles[user_id] = profile
                self._frequencies[user_id] = frequency
        finally:
            self._release_slot(user_id)

        logger.info(
            "profile_recomputed",
            user_id=user_id,
            total_transactions=profile.total_transactions,
            overall_risk_score=round(profile.overall_risk_score, 4),
        )
        return profile, frequency
