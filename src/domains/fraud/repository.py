"""SQL-backed historical transaction queries."""

from datetime import datetime

import structlog
from sqlalchemy import Float, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import TransactionRecord

from .models import GeoLocation, Transaction, TransactionType

logger = structlog.get_logger()


def to_transaction(row: TransactionRecord) -> Transaction:
    geo = None
    if any(v is not None for v in (row.latitude, row.longitude, row.country, row.city)):
        geo = GeoLocation(
            latitude=row.latitude,
            longitude=row.longitude,
            country=row.country,
            city=row.city,
        )
    return Transaction(
        transaction_id=row.transaction_id,
        user_id=row.user_id,
        amount=row.amount,
        currency=row.currency,
        merchant_category=row.merchant_category,
        merchant_name=row.merchant_name,
        transaction_type=TransactionType(row.transaction_type) if row.transaction_type else None,
        is_international=bool(row.is_international),
        geo_location=geo,
        created_at=row.created_at,
    )


def to_record(transaction: Transaction) -> TransactionRecord:
    geo = transaction.geo_location or GeoLocation()
    return TransactionRecord(
        transaction_id=transaction.transaction_id,
        user_id=transaction.user_id,
        amount=transaction.amount,
        currency=transaction.currency,
        merchant_category=transaction.merchant_category,
        merchant_name=transaction.merchant_name,
        transaction_type=transaction.transaction_type.value if transaction.transaction_type else None,
        is_international=transaction.is_international,
        latitude=geo.latitude,
        longitude=geo.longitude,
        country=geo.country,
        city=geo.city,
        created_at=transaction.created_at,
    )


class SqlTransactionHistory:
    """Answers history queries from the ``transactions`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def _window_filter(self, user_id: str, since: datetime, until: datetime) -> tuple:
        return (
            TransactionRecord.user_id == user_id,
            TransactionRecord.created_at >= since,
            TransactionRecord.created_at <= until,
        )

    def _prior_filter(self, user_id: str, before: datetime, exclude_id: str | None) -> tuple:
        clauses = (
            TransactionRecord.user_id == user_id,
            TransactionRecord.created_at < before,
        )
        if exclude_id is not None:
            clauses += (TransactionRecord.transaction_id != exclude_id,)
        return clauses

    async def add(self, transaction: Transaction) -> None:
        self._session.add(to_record(transaction))
        await self._session.flush()

    async def count_since(self, user_id: str, since: datetime, until: datetime) -> int:
        stmt = select(func.count()).where(*self._window_filter(user_id, since, until))
        result = await self._session.execute(stmt)
        return int(result.scalar_one() or 0)

    async def average_amount_since(
        self, user_id: str, since: datetime, until: datetime
    ) -> float | None:
        stmt = select(func.avg(TransactionRecord.amount.cast(Float))).where(
            *self._window_filter(user_id, since, until)
        )
        result = await self._session.execute(stmt)
        value = result.scalar_one()
        return float(value) if value is not None else None

    async def stddev_amount_since(
        self, user_id: str, since: datetime, until: datetime
    ) -> float | None:
        stmt = select(func.stddev(TransactionRecord.amount.cast(Float))).where(
            *self._window_filter(user_id, since, until)
        )
        result = await self._session.execute(stmt)
        value = result.scalar_one()
        return float(value) if value is not None else None

    async def has_transacted_in_country(
        self, user_id: str, country: str, before: datetime, exclude_id: str | None = None
    ) -> bool:
        stmt = select(func.count()).where(
            *self._prior_filter(user_id, before, exclude_id),
            TransactionRecord.country == country,
        )
        result = await self._session.execute(stmt)
        return (result.scalar_one() or 0) > 0

    async def count_distinct_countries(
        self, user_id: str, before: datetime, exclude_id: str | None = None
    ) -> int:
        stmt = select(func.count(func.distinct(TransactionRecord.country))).where(
            *self._prior_filter(user_id, before, exclude_id),
            TransactionRecord.country.isnot(None),
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one() or 0)

    async def most_recent_with_location(
        self, user_id: str, before: datetime, exclude_id: str | None = None
    ) -> Transaction | None:
        stmt = (
            select(TransactionRecord)
            .where(
                *self._prior_filter(user_id, before, exclude_id),
                TransactionRecord.latitude.isnot(None),
                TransactionRecord.longitude.isnot(None),
            )
            .order_by(TransactionRecord.created_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        row = result.scalars().first()
        return to_transaction(row) if row is not None else None

    async def transactions_for_user(self, user_id: str) -> list[Transaction]:
        stmt = (
            select(TransactionRecord)
            .where(TransactionRecord.user_id == user_id)
            .order_by(TransactionRecord.created_at)
        )
        result = await self._session.execute(stmt)
        rows = result.scalars().all()
        logger.debug("history_loaded", user_id=user_id, count=len(rows))
        return [to_transaction(r) for r in rows]
