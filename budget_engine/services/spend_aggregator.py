"""Spend aggregation over the transaction ledger."""

from datetime import date
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession

from budget_engine.models.transaction import Transaction


class SpendAggregator(Protocol):
    """Read-only source of per-category spend figures."""

    async def sum_expenses(
        self, family_id: UUID, category_id: UUID, start: date, end: date
    ) -> Decimal:
        """Signed sum of expense entries in ``[start, end)``; zero when there are none."""
        ...


class SqlSpendAggregator:
    """Spend aggregator backed by the ``transactions`` table."""

    def __init__(self, db: AsyncSession):
        """Initialize spend aggregator.

        Args:
            db: Database session
        """
        self.db = db

    async def sum_expenses(
        self, family_id: UUID, category_id: UUID, start: date, end: date
    ) -> Decimal:
        stmt = select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            and_(
                Transaction.family_id == family_id,
                Transaction.category_id == category_id,
                Transaction.type == "EXPENSE",
                Transaction.date >= start,
                Transaction.date < end,
                Transaction.deleted_at.is_(None),
            )
        )
        result = await self.db.execute(stmt)
        total = result.scalar_one()
        return Decimal(str(total)) if total is not None else Decimal("0")


async def spent_in_window(
    aggregator: SpendAggregator, family_id: UUID, category_id: UUID, start: date, end: date
) -> Decimal:
    """Spent amount for a category, as a positive figure.

    Ledgers may record expenses as negative amounts, so the signed sum is
    normalized with ``abs``.
    """
    return abs(await aggregator.sum_expenses(family_id, category_id, start, end))
