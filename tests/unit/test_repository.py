"""Unit tests for the SQL-backed transaction history."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.db.models import TransactionRecord
from src.domains.fraud.history import TransactionHistory
from src.domains.fraud.models import GeoLocation, Transaction, TransactionType
from src.domains.fraud.repository import SqlTransactionHistory, to_record, to_transaction

NOW = datetime(2026, 1, 15, 14, 0, 0, tzinfo=UTC)


def _mock_session(scalar_value=None, rows=None):
    session = AsyncMock()
    mock_result = MagicMock()
    mock_result.scalar_one.return_value = scalar_value
    mock_result.scalars.return_value.first.return_value = rows[0] if rows else None
    mock_result.scalars.return_value.all.return_value = rows or []
    session.execute.return_value = mock_result
    session.add = MagicMock()
    return session


def _record(**kwargs) -> TransactionRecord:
    defaults = {
        "transaction_id": "txn-1",
        "user_id": "user-1",
        "amount": Decimal("42.50"),
        "currency": "USD",
        "merchant_category": "GROCERY",
        "merchant_name": "Corner Market",
        "transaction_type": "PURCHASE",
        "is_international": False,
        "latitude": 40.71,
        "longitude": -74.0,
        "country": "US",
        "city": "New York",
        "created_at": NOW,
    }
    defaults.update(kwargs)
    return TransactionRecord(**defaults)


class TestMapping:
    def test_row_to_transaction(self):
        txn = to_transaction(_record())
        assert txn.amount == Decimal("42.50")
        assert txn.transaction_type == TransactionType.PURCHASE
        assert txn.geo_location.country == "US"
        assert txn.has_geographic_data

    def test_row_without_location(self):
        txn = to_transaction(
            _record(latitude=None, longitude=None, country=None, city=None, transaction_type=None)
        )
        assert txn.geo_location is None
        assert txn.transaction_type is None

    def test_transaction_to_row(self):
        txn = Transaction(
            transaction_id="txn-9",
            user_id="user-1",
            amount=Decimal("10"),
            geo_location=GeoLocation(country="FR"),
            created_at=NOW,
        )
        row = to_record(txn)
        assert row.transaction_id == "txn-9"
        assert row.country == "FR"
        assert row.latitude is None


class TestSqlTransactionHistory:
    def test_satisfies_protocol(self):
        assert isinstance(SqlTransactionHistory(_mock_session()), TransactionHistory)

    @pytest.mark.asyncio
    async def test_count_since(self):
        history = SqlTransactionHistory(_mock_session(scalar_value=4))
        assert await history.count_since("user-1", NOW - timedelta(minutes=5), NOW) == 4

    @pytest.mark.asyncio
    async def test_average_no_rows(self):
        history = SqlTransactionHistory(_mock_session(scalar_value=None))
        assert await history.average_amount_since("user-1", NOW - timedelta(days=30), NOW) is None

    @pytest.mark.asyncio
    async def test_stddev(self):
        history = SqlTransactionHistory(_mock_session(scalar_value=Decimal("12.5")))
        assert await history.stddev_amount_since("user-1", NOW - timedelta(days=30), NOW) == 12.5

    @pytest.mark.asyncio
    async def test_has_transacted_in_country(self):
        history = SqlTransactionHistory(_mock_session(scalar_value=2))
        assert await history.has_transacted_in_country("user-1", "US", NOW, exclude_id="txn-1")

    @pytest.mark.asyncio
    async def test_distinct_countries(self):
        history = SqlTransactionHistory(_mock_session(scalar_value=0))
        assert await history.count_distinct_countries("user-1", NOW) == 0

    @pytest.mark.asyncio
    async def test_most_recent_with_location(self):
        history = SqlTransactionHistory(_mock_session(rows=[_record(transaction_id="prior")]))
        txn = await history.most_recent_with_location("user-1", NOW, exclude_id="txn-1")
        assert txn.transaction_id == "prior"

    @pytest.mark.asyncio
    async def test_most_recent_none(self):
        history = SqlTransactionHistory(_mock_session(rows=[]))
        assert await history.most_recent_with_location("user-1", NOW) is None

    @pytest.mark.asyncio
    async def test_transactions_for_user(self):
        rows = [_record(transaction_id=f"txn-{i}") for i in range(3)]
        history = SqlTransactionHistory(_mock_session(rows=rows))
        txns = await history.transactions_for_user("user-1")
        assert [t.transaction_id for t in txns] == ["txn-0", "txn-1", "txn-2"]

    @pytest.mark.asyncio
    async def test_add_flushes(self):
        session = _mock_session()
        history = SqlTransactionHistory(session)
        await history.add(
            Transaction(transaction_id="txn-1", user_id="user-1", amount=Decimal("5"), created_at=NOW)
        )
        session.add.assert_called_once()
        session.flush.assert_awaited_once()
