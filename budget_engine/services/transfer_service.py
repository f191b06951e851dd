"""Transfer service: moves banked allowance between two categories of one budget.

A transfer is a double-entry move on ``rollover_amount``: the source loses
exactly what the destination gains, inside one savepoint. Spend already
attributed to the source category stays where it is.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, and_, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from budget_engine.exceptions import (
    InsufficientFundsError,
    NotFoundError,
    StorageFailure,
    ValidationError,
)
from budget_engine.logging_config import get_logger
from budget_engine.metrics.engine_metrics import engine_metrics
from budget_engine.models.budget import Budget, BudgetCategory
from budget_engine.services.budget_service import load_budget
from budget_engine.services.category_directory import CategoryDirectory
from budget_engine.services.spend_aggregator import (
    SpendAggregator,
    SqlSpendAggregator,
    spent_in_window,
)

logger = get_logger(__name__)

DEFAULT_REASON = "Budget transfer"


@dataclass
class TransferLeg:
    """One side of a transfer."""

    category_id: UUID
    category_name: Optional[str]
    new_rollover_amount: Decimal


@dataclass
class TransferResult:
    """Outcome of a completed transfer."""

    budget_id: UUID
    source: TransferLeg
    destination: TransferLeg
    amount: Decimal
    reason: str
    transferred_at: datetime


@dataclass
class TransferOption:
    """A category with allowance available to give away."""

    category_id: UUID
    category_name: Optional[str]
    monthly_limit: Decimal
    rollover_amount: Decimal
    current_spent: Decimal
    effective_limit: Decimal
    available: Decimal


@dataclass
class TransferOptions:
    """Categories of a budget able to fund a transfer."""

    budget_id: UUID
    categories: List[TransferOption] = field(default_factory=list)

    @property
    def total_available(self) -> Decimal:
        return sum((c.available for c in self.categories), Decimal("0"))


class TransferService:
    """Service for rollover transfers between budget categories."""

    def __init__(self, db: AsyncSession, aggregator: Optional[SpendAggregator] = None):
        """Initialize transfer service.

        Args:
            db: Database session
            aggregator: Spend aggregator (defaults to the SQL ledger)
        """
        self.db = db
        self.aggregator = aggregator or SqlSpendAggregator(db)
        self.directory = CategoryDirectory(db)

    async def _available(self, budget: Budget, budget_category: BudgetCategory) -> Decimal:
        spent = await spent_in_window(
            self.aggregator,
            budget.family_id,
            budget_category.category_id,
            budget.start_date,
            budget.end_date,
        )
        return budget_category.effective_limit - spent

    async def _lock_categories(
        self, budget_id: UUID, category_ids: List[UUID]
    ) -> Dict[UUID, BudgetCategory]:
        # FOR UPDATE serializes concurrent transfers on the same rows (ignored by SQLite)
        stmt = (
            select(BudgetCategory)
            .where(
                and_(
                    BudgetCategory.budget_id == budget_id,
                    BudgetCategory.category_id.in_(category_ids),
                )
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        rows = (await self.db.execute(stmt)).scalars().all()
        return {row.category_id: row for row in rows}

    async def transfer(
        self,
        budget_id: UUID,
        family_id: UUID,
        from_category_id: UUID,
        to_category_id: UUID,
        amount: Decimal,
        reason: Optional[str] = None,
    ) -> TransferResult:
        """Move ``amount`` of allowance from one category to another.

        Args:
            budget_id: Budget ID
            family_id: Family ID (for authorization)
            from_category_id: Source category
            to_category_id: Destination category
            amount: Positive amount to move
            reason: Free-text reason recorded with the transfer

        Returns:
            TransferResult: New rollover amounts of both categories

        Raises:
            ValidationError: If the categories are the same or the amount is not positive
            NotFoundError: If the budget or either category is not found
            InsufficientFundsError: If the source's available balance is below ``amount``
            StorageFailure: On transient database errors
        """
        amount = Decimal(amount)
        reason = reason or DEFAULT_REASON

        if from_category_id == to_category_id:
            raise ValidationError(
                "Cannot transfer to the same category",
                details={"category_id": str(from_category_id)},
            )
        if amount <= 0:
            raise ValidationError(
                f"Transfer amount must be positive, got {amount}",
                details={"amount": str(amount)},
            )

        try:
            budget = await load_budget(self.db, budget_id, family_id)
            async with self.db.begin_nested():
                rows = await self._lock_categories(budget.id, [from_category_id, to_category_id])
                source = rows.get(from_category_id)
                destination = rows.get(to_category_id)
                if source is None or destination is None:
                    missing = [c for c in (from_category_id, to_category_id) if c not in rows]
                    unknown = [c for c in missing if not await self.directory.exists(c)]
                    message = "Category not found" if unknown else "Category is not in this budget"
                    raise NotFoundError(
                        message,
                        details={
                            "budget_id": str(budget_id),
                            "missing": [str(c) for c in missing],
                            "unknown": [str(c) for c in unknown],
                        },
                    )

                available = await self._available(budget, source)
                if available < amount:
                    raise InsufficientFundsError(
                        f"Insufficient funds in source category: {available} available, "
                        f"{amount} requested",
                        available=available,
                        requested=amount,
                    )

                await self.db.execute(
                    update(BudgetCategory)
                    .where(BudgetCategory.id == source.id)
                    .values(rollover_amount=BudgetCategory.rollover_amount - amount)
                )
                await self.db.execute(
                    update(BudgetCategory)
                    .where(BudgetCategory.id == destination.id)
                    .values(rollover_amount=BudgetCategory.rollover_amount + amount)
                )
                rows = await self._lock_categories(budget.id, [from_category_id, to_category_id])
        except InsufficientFundsError as e:
            engine_metrics.transfers.labels(status="rejected").inc()
            logger.warning(
                "Transfer rejected",
                budget_id=str(budget_id),
                from_category_id=str(from_category_id),
                to_category_id=str(to_category_id),
                requested=str(e.requested),
                available=str(e.available),
            )
            raise
        except DBAPIError as e:
            raise StorageFailure(
                f"Could not store transfer of {amount} on budget {budget_id}",
                details={"budget_id": str(budget_id), "amount": str(amount)},
            ) from e

        source_category = await self.directory.get(from_category_id)
        destination_category = await self.directory.get(to_category_id)
        result = TransferResult(
            budget_id=budget_id,
            source=TransferLeg(
                category_id=from_category_id,
                category_name=source_category["name"] if source_category else None,
                new_rollover_amount=Decimal(rows[from_category_id].rollover_amount),
            ),
            destination=TransferLeg(
                category_id=to_category_id,
                category_name=destination_category["name"] if destination_category else None,
                new_rollover_amount=Decimal(rows[to_category_id].rollover_amount),
            ),
            amount=amount,
            reason=reason,
            transferred_at=datetime.now(timezone.utc).replace(tzinfo=None),
        )

        engine_metrics.transfers.labels(status="applied").inc()
        logger.info(
            "Transfer applied",
            budget_id=str(budget_id),
            family_id=str(family_id),
            from_category_id=str(from_category_id),
            to_category_id=str(to_category_id),
            amount=str(amount),
            reason=reason,
        )
        return result

    async def transfer_options(
        self,
        budget_id: UUID,
        family_id: UUID,
        needing_category_id: Optional[UUID] = None,
    ) -> TransferOptions:
        """Categories of a budget with allowance available to transfer.

        Args:
            budget_id: Budget ID
            family_id: Family ID (for authorization)
            needing_category_id: Category that needs funds, excluded from the list

        Returns:
            TransferOptions: Categories with ``available > 0`` and their total

        Raises:
            NotFoundError: If the budget is not found in the family
        """
        budget = await load_budget(self.db, budget_id, family_id)
        names = await self.directory.get_many(c.category_id for c in budget.categories)

        options = TransferOptions(budget_id=budget.id)
        for budget_category in budget.categories:
            if budget_category.category_id == needing_category_id:
                continue
            spent = await spent_in_window(
                self.aggregator,
                budget.family_id,
                budget_category.category_id,
                budget.start_date,
                budget.end_date,
            )
            available = budget_category.effective_limit - spent
            if available <= 0:
                continue
            options.categories.append(
                TransferOption(
                    category_id=budget_category.category_id,
                    category_name=self._name(names, budget_category.category_id),
                    monthly_limit=Decimal(budget_category.monthly_limit),
                    rollover_amount=Decimal(budget_category.rollover_amount),
                    current_spent=spent,
                    effective_limit=budget_category.effective_limit,
                    available=available,
                )
            )
        return options

    @staticmethod
    def _name(names: Dict[UUID, Dict[str, object]], category_id: UUID) -> Optional[str]:
        summary = names.get(category_id)
        return summary["name"] if summary else None
