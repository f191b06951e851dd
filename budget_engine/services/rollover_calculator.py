"""Rollover calculator: how much unused allowance carries into the next period.

Deficits are reported, never applied: a negative remaining balance yields a
zero rollover plus an informational ``deficit``.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from budget_engine.exceptions import ValidationError
from budget_engine.logging_config import get_logger
from budget_engine.models.budget import Budget, BudgetCategory
from budget_engine.services.budget_service import load_budget
from budget_engine.services.category_directory import CategoryDirectory
from budget_engine.services.period_calculator import PeriodUnit, calculate_period
from budget_engine.services.spend_aggregator import (
    SpendAggregator,
    SqlSpendAggregator,
    spent_in_window,
)

logger = get_logger(__name__)

ZERO = Decimal("0")


@dataclass
class RolloverResult:
    """Rollover outcome for one category."""

    category_id: UUID
    rollover_amount: Decimal
    deficit: Decimal
    status: str  # APPLIED, DISABLED, FULLY_USED, DEFICIT
    message: str
    spent: Decimal = ZERO
    effective_limit: Decimal = ZERO
    category_name: Optional[str] = None


@dataclass
class RolloverPreview:
    """Rollover outcome for every category of a budget."""

    budget_id: UUID
    period_start: date
    period_end: date
    categories: List[RolloverResult] = field(default_factory=list)

    @property
    def total_rollover(self) -> Decimal:
        return sum((r.rollover_amount for r in self.categories), ZERO)

    @property
    def total_deficit(self) -> Decimal:
        return sum((r.deficit for r in self.categories), ZERO)

    def by_category(self) -> Dict[UUID, RolloverResult]:
        return {r.category_id: r for r in self.categories}


def compute_rollover(
    monthly_limit: Decimal,
    rollover_amount: Decimal,
    enable_rollover: bool,
    spent: Decimal,
    category_id: Optional[UUID] = None,
) -> RolloverResult:
    """Compute the carry-over of one closed category.

    Args:
        monthly_limit: Category limit in the closed period
        rollover_amount: Rollover already applied to the closed period
        enable_rollover: Whether the category carries allowance forward
        spent: Spend in the closed period
        category_id: Category the result is for

    Returns:
        RolloverResult: Amount to carry forward and any deficit
    """
    effective_limit = Decimal(monthly_limit) + Decimal(rollover_amount or 0)
    remaining = effective_limit - spent

    if not enable_rollover:
        return RolloverResult(
            category_id=category_id,
            rollover_amount=ZERO,
            deficit=ZERO,
            status="DISABLED",
            message="Rollover disabled for this category",
            spent=spent,
            effective_limit=effective_limit,
        )

    if remaining > 0:
        return RolloverResult(
            category_id=category_id,
            rollover_amount=remaining,
            deficit=ZERO,
            status="APPLIED",
            message=f"Rollover applied: {remaining}",
            spent=spent,
            effective_limit=effective_limit,
        )

    if remaining < 0:
        return RolloverResult(
            category_id=category_id,
            rollover_amount=ZERO,
            deficit=-remaining,
            status="DEFICIT",
            message=f"Deficit: {-remaining}",
            spent=spent,
            effective_limit=effective_limit,
        )

    return RolloverResult(
        category_id=category_id,
        rollover_amount=ZERO,
        deficit=ZERO,
        status="FULLY_USED",
        message="No rollover (budget fully used)",
        spent=spent,
        effective_limit=effective_limit,
    )


async def compute_budget_rollover(
    budget: Budget,
    aggregator: SpendAggregator,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> RolloverPreview:
    """Compute rollover for every category of ``budget``.

    Spend is measured over ``[start, end)``, defaulting to the budget's own window.
    """
    start = start or budget.start_date
    end = end or budget.end_date

    preview = RolloverPreview(budget_id=budget.id, period_start=start, period_end=end)
    for budget_category in budget.categories:
        spent = await spent_in_window(
            aggregator, budget.family_id, budget_category.category_id, start, end
        )
        preview.categories.append(
            compute_rollover(
                monthly_limit=budget_category.monthly_limit,
                rollover_amount=budget_category.rollover_amount,
                enable_rollover=budget_category.enable_rollover,
                spent=spent,
                category_id=budget_category.category_id,
            )
        )

    logger.debug(
        "Rollover computed",
        budget_id=str(budget.id),
        categories=len(preview.categories),
        total_rollover=str(preview.total_rollover),
        total_deficit=str(preview.total_deficit),
    )
    return preview


class RolloverService:
    """Standalone rollover preview and the apply-to-next-budget path."""

    def __init__(self, db: AsyncSession, aggregator: Optional[SpendAggregator] = None):
        """Initialize rollover service.

        Args:
            db: Database session
            aggregator: Spend aggregator (defaults to the SQL ledger)
        """
        self.db = db
        self.aggregator = aggregator or SqlSpendAggregator(db)
        self.directory = CategoryDirectory(db)

    async def preview(
        self, budget_id: UUID, family_id: UUID, month: Optional[date] = None
    ) -> RolloverPreview:
        """Project the rollover of a budget without persisting anything.

        Args:
            budget_id: Budget ID
            family_id: Family ID (for authorization)
            month: Measure spend over this calendar month instead of the budget's window

        Returns:
            RolloverPreview: Per-category rollover and totals

        Raises:
            NotFoundError: If the budget does not exist in the family
        """
        budget = await load_budget(self.db, budget_id, family_id)

        if month is not None:
            window = calculate_period(PeriodUnit.MONTHLY, month)
            preview = await compute_budget_rollover(budget, self.aggregator, window.start, window.end)
        else:
            preview = await compute_budget_rollover(budget, self.aggregator)

        names = await self.directory.get_many(r.category_id for r in preview.categories)
        for result in preview.categories:
            summary = names.get(result.category_id)
            result.category_name = summary["name"] if summary else None

        return preview

    async def apply(
        self, budget_id: UUID, next_budget_id: UUID, family_id: UUID
    ) -> RolloverPreview:
        """Set each category of the next budget to the rollover computed from ``budget_id``.

        Categories of the next budget absent from the previous one are left untouched.

        Args:
            budget_id: Closed (previous) budget ID
            next_budget_id: Budget receiving the rollover
            family_id: Family ID (for authorization)

        Returns:
            RolloverPreview: The rollover that was applied

        Raises:
            NotFoundError: If either budget does not exist in the family
            ValidationError: If the next budget does not follow the previous one
        """
        previous = await load_budget(self.db, budget_id, family_id)
        following = await load_budget(self.db, next_budget_id, family_id)

        if previous.id == following.id:
            raise ValidationError("Cannot apply a budget's rollover to itself")
        if following.start_date < previous.end_date:
            raise ValidationError(
                f"Budget '{following.name}' starting {following.start_date} does not follow "
                f"'{previous.name}' ending {previous.end_date}",
                details={
                    "previous_end": str(previous.end_date),
                    "next_start": str(following.start_date),
                },
            )

        preview = await compute_budget_rollover(previous, self.aggregator)
        results = preview.by_category()

        async with self.db.begin_nested():
            stmt = select(BudgetCategory).where(
                and_(
                    BudgetCategory.budget_id == following.id,
                    BudgetCategory.category_id.in_(list(results)),
                )
            )
            rows = (await self.db.execute(stmt)).scalars().all()
            for row in rows:
                row.rollover_amount = results[row.category_id].rollover_amount

        logger.info(
            "Rollover applied",
            budget_id=str(previous.id),
            next_budget_id=str(following.id),
            family_id=str(family_id),
            categories_updated=len(rows),
            total_rollover=str(preview.total_rollover),
        )
        return preview
