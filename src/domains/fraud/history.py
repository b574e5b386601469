"""Read-only historical transaction queries consumed by rules and profiles.

Rules receive a ``TransactionHistory`` in their context and await the
aggregate they need. Every query is keyed by user id, has no side effects,
and answers "no data" with ``None``, 0, False or an empty list.

Transactions are stored before they are assessed, so window counts and
averages include the transaction under assessment. Queries bounded by
``before`` are strict and accept ``exclude_id`` so the current transaction
never counts as its own history.
"""

import asyncio
import statistics
from datetime import datetime
from typing import Protocol, runtime_checkable

from .models import Transaction


@runtime_checkable
class TransactionHistory(Protocol):
    async def count_since(self, user_id: str, since: datetime, until: datetime) -> int: ...

    async def average_amount_since(
        self, user_id: str, since: datetime, until: datetime
    ) -> float | None: ...

    async def stddev_amount_since(
        self, user_id: str, since: datetime, until: datetime
    ) -> float | None: ...

    async def has_transacted_in_country(
        self, user_id: str, country: str, before: datetime, exclude_id: str | None = None
    ) -> bool: ...

    async def count_distinct_countries(
        self, user_id: str, before: datetime, exclude_id: str | None = None
    ) -> int: ...

    async def most_recent_with_location(
        self, user_id: str, before: datetime, exclude_id: str | None = None
    ) -> Transaction | None: ...

    async def transactions_for_user(self, user_id: str) -> list[Transaction]: ...


class InMemoryTransactionHistory:
    """Append-only in-process history. Reads work on a snapshot copy."""

    def __init__(self, transactions: list[Transaction] | None = None) -> None:
        self._by_user: dict[str, list[Transaction]] = {}
        self._lock = asyncio.Lock()
        for txn in transactions or []:
            self._by_user.setdefault(txn.user_id, []).append(txn)

    async def add(self, transaction: Transaction) -> None:
        async with self._lock:
            self._by_user.setdefault(transaction.user_id, []).append(transaction)

    async def transactions_for_user(self, user_id: str) -> list[Transaction]:
        async with self._lock:
            return list(self._by_user.get(user_id, []))

    async def _window(self, user_id: str, since: datetime, until: datetime) -> list[Transaction]:
        return [t for t in await self.transactions_for_user(user_id) if since <= t.created_at <= until]

    async def _prior(
        self, user_id: str, before: datetime, exclude_id: str | None
    ) -> list[Transaction]:
        return [
            t
            for t in await self.transactions_for_user(user_id)
            if t.created_at < before and t.transaction_id != exclude_id
        ]

    async def count_since(self, user_id: str, since: datetime, until: datetime) -> int:
        return len(await self._window(user_id, since, until))

    async def average_amount_since(
        self, user_id: str, since: datetime, until: datetime
    ) -> float | None:
        amounts = [t.amount_float for t in await self._window(user_id, since, until)]
        if not amounts:
            return None
        return statistics.fmean(amounts)

    async def stddev_amount_since(
        self, user_id: str, since: datetime, until: datetime
    ) -> float | None:
        amounts = [t.amount_float for t in await self._window(user_id, since, until)]
        if len(amounts) < 2:
            return None
        return statistics.stdev(amounts)

    async def has_transacted_in_country(
        self, user_id: str, country: str, before: datetime, exclude_id: str | None = None
    ) -> bool:
        return any(t.country == country for t in await self._prior(user_id, before, exclude_id))

    async def count_distinct_countries(
        self, user_id: str, before: datetime, exclude_id: str | None = None
    ) -> int:
        prior = await self._prior(user_id, before, exclude_id)
        return len({t.country for t in prior if t.country})

    async def most_recent_with_location(
        self, user_id: str, before: datetime, exclude_id: str | None = None
    ) -> Transaction | None:
        located = [t for t in await self._prior(user_id, before, exclude_id) if t.has_geographic_data]
        if not located:
            return None
        return max(located, key=lambda t: t.created_at)
