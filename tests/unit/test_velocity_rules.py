"""Unit tests for velocity-based fraud detection rules."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from src.domains.fraud.config import FraudConfig
from src.domains.fraud.history import InMemoryTransactionHistory
from src.domains.fraud.models import Transaction, UserRiskProfile
from src.domains.fraud.rules import RuleContext, odd_hour_activity, velocity

CONFIG = FraudConfig()
NOW = datetime(2026, 1, 15, 14, 0, 0, tzinfo=UTC)


def _txn(txn_id="txn-1", created_at=NOW) -> Transaction:
    return Transaction(
        transaction_id=txn_id,
        user_id="user-1",
        amount=Decimal("25.00"),
        created_at=created_at,
    )


def _ctx(txn, history, total=30) -> RuleContext:
    return RuleContext(
        transaction=txn,
        profile=UserRiskProfile(user_id="user-1", total_transactions=total),
        merchant_frequency=None,
        history=history,
        config=CONFIG,
    )


async def _history_with(offsets_minutes) -> InMemoryTransactionHistory:
    history = InMemoryTransactionHistory()
    for i, minutes in enumerate(offsets_minutes):
        await history.add(_txn(f"prior-{i}", NOW - timedelta(minutes=minutes)))
    return history


class TestVelocity:
    @pytest.mark.asyncio
    async def test_quiet_user_passes(self):
        history = await _history_with([30])
        txn = _txn()
        await history.add(txn)
        assert await velocity(_ctx(txn, history)) is None

    @pytest.mark.asyncio
    async def test_three_in_five_minutes_passes(self):
        history = await _history_with([1, 2])
        txn = _txn()
        await history.add(txn)
        assert await velocity(_ctx(txn, history)) is None

    @pytest.mark.asyncio
    async def test_four_in_five_minutes(self):
        history = await _history_with([1, 2, 3])
        txn = _txn()
        await history.add(txn)
        violation = await velocity(_ctx(txn, history))
        assert violation.rule_id == "VELOCITY_5MIN"
        assert violation.risk_score == 0.9

    @pytest.mark.asyncio
    async def test_fifteen_minute_window(self):
        # 3 inside 5 min, 9 inside 15 min
        history = await _history_with([1, 2, 7, 8, 9, 10, 11, 12])
        txn = _txn()
        await history.add(txn)
        violation = await velocity(_ctx(txn, history))
        assert violation.rule_id == "VELOCITY_15MIN"
        assert violation.risk_score == 0.75

    @pytest.mark.asyncio
    async def test_hourly_window(self):
        # 21 in the hour: 3 within 5 min, 8 within 15 min
        offsets = [1, 2, 6, 8, 10, 12, 14] + [20 + 3 * i for i in range(13)]
        history = await _history_with(offsets)
        txn = _txn()
        await history.add(txn)
        violation = await velocity(_ctx(txn, history))
        assert violation.rule_id == "VELOCITY_1HOUR"
        assert violation.risk_score == 0.6
        assert "21 transactions in 1 hour" in violation.description

    @pytest.mark.asyncio
    async def test_tightest_window_wins(self):
        history = await _history_with(list(range(1, 4)) + [20 + i for i in range(30)])
        txn = _txn()
        await history.add(txn)
        violation = await velocity(_ctx(txn, history))
        assert violation.rule_id == "VELOCITY_5MIN"

    @pytest.mark.asyncio
    async def test_other_users_not_counted(self):
        history = InMemoryTransactionHistory()
        for i in range(5):
            await history.add(
                Transaction(
                    transaction_id=f"other-{i}",
                    user_id="user-2",
                    amount=Decimal("10"),
                    created_at=NOW - timedelta(minutes=1),
                )
            )
        txn = _txn()
        await history.add(txn)
        assert await velocity(_ctx(txn, history)) is None


class TestOddHourActivity:
    @pytest.mark.asyncio
    async def test_late_night_low_history(self):
        txn = _txn(created_at=datetime(2026, 1, 15, 3, 30, tzinfo=UTC))
        violation = await odd_hour_activity(_ctx(txn, InMemoryTransactionHistory(), total=5))
        assert violation.rule_id == "ODD_HOUR_LOW_HISTORY"
        assert violation.risk_score == 0.6

    @pytest.mark.asyncio
    async def test_five_am_passes(self):
        txn = _txn(created_at=datetime(2026, 1, 15, 5, 0, tzinfo=UTC))
        assert await odd_hour_activity(_ctx(txn, InMemoryTransactionHistory(), total=5)) is None

    @pytest.mark.asyncio
    async def test_established_user_passes(self):
        txn = _txn(created_at=datetime(2026, 1, 15, 2, 0, tzinfo=UTC))
        assert await odd_hour_activity(_ctx(txn, InMemoryTransactionHistory(), total=20)) is None
