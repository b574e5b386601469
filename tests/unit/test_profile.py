"""Unit tests for risk profile computation and the profile service."""

import asyncio
import random
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from src.domains.fraud.history import InMemoryTransactionHistory
from src.domains.fraud.models import Transaction, UserRiskProfile
from src.domains.fraud.profile import (
    UserProfileService,
    behavioral_risk,
    compute_merchant_frequency,
    compute_profile,
    transactional_risk,
)

NOW = datetime(2026, 1, 15, 14, 0, 0, tzinfo=UTC)


def _txn(i, amount="100.00", category="GROCERY", international=False, user_id="user-1"):
    return Transaction(
        transaction_id=f"txn-{i}",
        user_id=user_id,
        amount=Decimal(amount),
        merchant_category=category,
        is_international=international,
        created_at=NOW - timedelta(hours=i),
    )


class TestComputeProfile:
    def test_empty_history(self):
        assert compute_profile("user-1", []) == UserRiskProfile.new_user("user-1")

    def test_aggregates(self):
        txns = [
            _txn(0, "100"),
            _txn(1, "300", category="TRAVEL", international=True),
            _txn(2, "12000", category="GAMBLING"),
        ]
        profile = compute_profile("user-1", txns)
        assert profile.total_transactions == 3
        assert profile.total_transaction_value == pytest.approx(12400)
        assert profile.average_transaction_amount == pytest.approx(12400 / 3)
        assert profile.international_transaction_count == 1
        # international + (gambling and over 10k)
        assert profile.high_risk_transaction_count == 2
        assert profile.first_transaction_date == NOW - timedelta(hours=2)
        assert profile.last_transaction_date == NOW

    def test_risk_scores(self):
        profile = compute_profile("user-1", [_txn(0, "100"), _txn(1, "300")])
        # fewer than 10 transactions and one category
        assert profile.behavioral_risk_score == pytest.approx(0.8)
        # avg 200, max 300: 0.5 + 0.5 * 0.3
        assert profile.transaction_risk_score == pytest.approx(0.65)
        assert profile.overall_risk_score == pytest.approx(0.725)

    def test_order_independent(self):
        txns = [
            _txn(i, f"{17 + i * 3.13:.2f}", category=f"C{i % 4}", international=i % 3 == 0)
            for i in range(40)
        ]
        shuffled = list(txns)
        random.Random(7).shuffle(shuffled)
        assert compute_profile("user-1", txns) == compute_profile("user-1", shuffled)

    def test_idempotent(self):
        txns = [_txn(i) for i in range(5)]
        assert compute_profile("user-1", txns) == compute_profile("user-1", txns)


class TestRiskComponents:
    def test_behavioral_mature_user(self):
        assert behavioral_risk(150, 0, 5) == pytest.approx(0.4)

    def test_behavioral_international_heavy(self):
        assert behavioral_risk(20, 10, 5) == pytest.approx(0.65)

    def test_behavioral_clamped(self):
        assert 0.0 <= behavioral_risk(1, 1, 0) <= 1.0

    def test_transactional_zero_average(self):
        assert transactional_risk(0.0, 0.0) == 0.5

    def test_transactional_capped(self):
        assert transactional_risk(10.0, 1000.0) == 1.0


class TestMerchantFrequency:
    def test_counts_ignore_blank(self):
        txns = [_txn(0), _txn(1), _txn(2, category="TRAVEL"), _txn(3, category="  "), _txn(4, category=None)]
        frequency = compute_merchant_frequency("user-1", txns)
        assert frequency.category_counts == {"GROCERY": 2, "TRAVEL": 1}
        assert frequency.unique_category_count == 2

    def test_common_threshold(self):
        frequency = compute_merchant_frequency("user-1", [_txn(i) for i in range(3)])
        assert frequency.is_category_common("GROCERY")
        assert frequency.common_categories == frozenset({"GROCERY"})
        assert not frequency.is_category_common("TRAVEL")

    def test_lookup_matches_stripped_keys(self):
        txns = [_txn(i, category="GROCERY ") for i in range(3)]
        frequency = compute_merchant_frequency("user-1", txns)
        assert frequency.category_counts == {"GROCERY": 3}
        assert frequency.frequency("GROCERY ") == 3
        assert frequency.is_category_common(" GROCERY")
        assert frequency.frequency(None) == 0
        assert frequency.frequency("   ") == 0

    def test_distinct_categories_use_stripped_keys(self):
        txns = [_txn(i, category=c) for i, c in enumerate(["GROCERY", "GROCERY ", "TRAVEL", " TRAVEL"])]
        # two distinct categories, so the low-diversity bump applies
        assert compute_profile("user-1", txns).behavioral_risk_score == pytest.approx(0.8)


class TestUserProfileService:
    @pytest.mark.asyncio
    async def test_lazy_new_user(self):
        service = UserProfileService(InMemoryTransactionHistory())
        profile = await service.get_profile("user-1")
        assert profile == UserRiskProfile.new_user("user-1")

    @pytest.mark.asyncio
    async def test_recompute_replaces_profile(self):
        history = InMemoryTransactionHistory()
        service = UserProfileService(history)
        before = await service.get_profile("user-1")
        await history.add(_txn(0, "250"))
        # cached until recomputed
        assert await service.get_profile("user-1") is before
        profile, frequency = await service.recompute("user-1")
        assert profile.total_transactions == 1
        assert frequency.category_counts == {"GROCERY": 1}
        assert await service.get_profile("user-1") is profile

    @pytest.mark.asyncio
    async def test_concurrent_recompute_consistent(self):
        history = InMemoryTransactionHistory([_txn(i) for i in range(10)])
        service = UserProfileService(history)
        results = await asyncio.gather(*(service.recompute("user-1") for _ in range(5)))
        assert {p.total_transactions for p, _ in results} == {10}
        assert all(p == results[0][0] for p, _ in results)

    @pytest.mark.asyncio
    async def test_users_isolated(self):
        history = InMemoryTransactionHistory([_txn(0), _txn(1, user_id="user-2")])
        service = UserProfileService(history)
        await asyncio.gather(service.recompute("user-1"), service.recompute("user-2"))
        assert (await service.get_profile("user-1")).total_transactions == 1
        assert (await service.get_profile("user-2")).total_transactions == 1

    @pytest.mark.asyncio
    async def test_locks_released_after_recompute(self):
        history = InMemoryTransactionHistory([_txn(0), _txn(1, user_id="user-2")])
        service = UserProfileService(history)
        await asyncio.gather(
            *(service.recompute(user_id) for user_id in ("user-1", "user-2", "user-1", "user-3"))
        )
        assert service.active_lock_count == 0
        assert (await service.get_profile("user-1")).total_transactions == 1
        assert service.active_lock_count == 0
