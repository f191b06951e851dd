"""Budget service: budget read model, hand-created budgets and the budget-edit path."""

from dataclasses import dataclass, field
from datetime import date as date_type
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from budget_engine.config import settings
from budget_engine.exceptions import ConflictError, NotFoundError, ValidationError
from budget_engine.logging_config import get_logger
from budget_engine.models.budget import Budget, BudgetCategory
from budget_engine.services.category_directory import CategoryDirectory
from budget_engine.services.period_calculator import Period, PeriodUnit, resolve_period
from budget_engine.services.spend_aggregator import (
    SpendAggregator,
    SqlSpendAggregator,
    spent_in_window,
)

logger = get_logger(__name__)

ZERO = Decimal("0")


@dataclass
class CategoryAllocation:
    """Requested limit for one category of a template or budget."""

    category_id: UUID
    monthly_limit: Decimal
    enable_rollover: bool = True


@dataclass
class CategoryProgress:
    """Live figures for one budget category."""

    budget_category_id: UUID
    category_id: UUID
    category: Optional[Dict[str, object]]
    monthly_limit: Decimal
    rollover_amount: Decimal
    enable_rollover: bool
    current_spent: Decimal
    effective_limit: Decimal
    remaining: Decimal
    percentage_used: float
    is_over_budget: bool
    is_near_limit: bool


@dataclass
class BudgetDetails:
    """A budget with derived spend figures."""

    budget: Budget
    categories: List[CategoryProgress] = field(default_factory=list)

    @property
    def total_spent(self) -> Decimal:
        return sum((c.current_spent for c in self.categories), ZERO)

    @property
    def total_limit(self) -> Decimal:
        return sum((c.effective_limit for c in self.categories), ZERO)

    @property
    def total_remaining(self) -> Decimal:
        return self.total_limit - self.total_spent

    @property
    def total_percentage(self) -> float:
        return percentage(self.total_spent, self.total_limit)

    @property
    def is_over_budget(self) -> bool:
        return self.total_spent > self.total_limit

    @property
    def is_near_limit(self) -> bool:
        return not self.is_over_budget and self.total_percentage >= self.budget.alert_threshold


def percentage(spent: Decimal, limit: Decimal) -> float:
    """Percentage of ``limit`` consumed by ``spent``; zero for a non-positive limit."""
    return float(spent / limit * 100) if limit > 0 else 0.0


def build_progress(
    budget_category: BudgetCategory,
    spent: Decimal,
    alert_threshold: int,
    category: Optional[Dict[str, object]] = None,
) -> CategoryProgress:
    """Derive the live figures of a budget category from its spend."""
    effective_limit = budget_category.effective_limit
    percentage_used = percentage(spent, effective_limit)
    is_over_budget = spent > effective_limit

    return CategoryProgress(
        budget_category_id=budget_category.id,
        category_id=budget_category.category_id,
        category=category,
        monthly_limit=Decimal(budget_category.monthly_limit),
        rollover_amount=Decimal(budget_category.rollover_amount or 0),
        enable_rollover=budget_category.enable_rollover,
        current_spent=spent,
        effective_limit=effective_limit,
        remaining=effective_limit - spent,
        percentage_used=percentage_used,
        is_over_budget=is_over_budget,
        is_near_limit=not is_over_budget and percentage_used >= alert_threshold,
    )


async def load_budget(db: AsyncSession, budget_id: UUID, family_id: UUID) -> Budget:
    """Load a budget of a family.

    Raises:
        NotFoundError: If the budget does not exist or belongs to another family
    """
    stmt = select(Budget).where(and_(Budget.id == budget_id, Budget.family_id == family_id))
    budget = (await db.execute(stmt)).scalar_one_or_none()
    if budget is None:
        raise NotFoundError(f"Budget {budget_id} not found", details={"budget_id": str(budget_id)})
    return budget


async def find_existing_budget(
    db: AsyncSession,
    family_id: UUID,
    name: str,
    period: Period,
    template_id: Optional[UUID] = None,
) -> Optional[Budget]:
    """Find a budget of the family already covering ``period``.

    A budget matches when its start date falls inside the period and it has
    the same name, or was generated from the same template.
    """
    same_budget = Budget.name == name
    if template_id is not None:
        same_budget = or_(same_budget, Budget.template_id == template_id)

    stmt = (
        select(Budget)
        .where(
            and_(
                Budget.family_id == family_id,
                same_budget,
                Budget.start_date >= period.start,
                Budget.start_date < period.end,
            )
        )
        .limit(1)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


def validate_alert_threshold(alert_threshold: Optional[int]) -> int:
    """Return the threshold, defaulted, after a range check."""
    if alert_threshold is None:
        return settings.default_alert_threshold
    if not 0 <= alert_threshold <= 100:
        raise ValidationError(
            f"Alert threshold must be between 0 and 100, got {alert_threshold}",
            details={"alert_threshold": alert_threshold},
        )
    return alert_threshold


async def validate_allocations(
    directory: CategoryDirectory, allocations: Sequence[CategoryAllocation]
) -> Decimal:
    """Validate a category set and return its total.

    Raises:
        ValidationError: If the set is empty, has duplicates or non-positive limits
        NotFoundError: If a category does not exist
    """
    if not allocations:
        raise ValidationError("At least one category is required")

    seen = set()
    for allocation in allocations:
        if allocation.category_id in seen:
            raise ValidationError(
                f"Category {allocation.category_id} is listed more than once",
                details={"category_id": str(allocation.category_id)},
            )
        seen.add(allocation.category_id)
        if Decimal(allocation.monthly_limit) <= 0:
            raise ValidationError(
                f"Monthly limit for category {allocation.category_id} must be positive",
                details={
                    "category_id": str(allocation.category_id),
                    "monthly_limit": str(allocation.monthly_limit),
                },
            )

    missing = await directory.missing(seen)
    if missing:
        raise NotFoundError(
            "One or more categories not found",
            details={"category_ids": [str(category_id) for category_id in missing]},
        )

    return sum((Decimal(a.monthly_limit) for a in allocations), ZERO)


class BudgetService:
    """Service for reading and hand-editing budgets."""

    def __init__(
        self,
        db: AsyncSession,
        aggregator: Optional[SpendAggregator] = None,
        clock: Callable[[], date_type] = date_type.today,
    ):
        """Initialize budget service.

        Args:
            db: Database session
            aggregator: Spend aggregator (defaults to the SQL ledger)
            clock: Source of "today"
        """
        self.db = db
        self.aggregator = aggregator or SqlSpendAggregator(db)
        self.directory = CategoryDirectory(db)
        self.clock = clock

    async def get_budget(self, budget_id: UUID, family_id: UUID) -> Budget:
        """Get a budget by ID.

        Raises:
            NotFoundError: If not found in the family
        """
        return await load_budget(self.db, budget_id, family_id)

    async def list_budgets(
        self, family_id: UUID, active_on: Optional[date_type] = None
    ) -> List[Budget]:
        """List budgets of a family, newest period first.

        Args:
            family_id: Family ID
            active_on: If given, only budgets whose window contains this date

        Returns:
            List of budgets
        """
        stmt = select(Budget).where(Budget.family_id == family_id)

        if active_on is not None:
            stmt = stmt.where(and_(Budget.start_date <= active_on, Budget.end_date > active_on))

        stmt = stmt.order_by(Budget.start_date.desc(), Budget.created_at.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def describe(self, budget: Budget) -> BudgetDetails:
        """Compute live spend figures over the budget's own window."""
        names = await self.directory.get_many(c.category_id for c in budget.categories)

        details = BudgetDetails(budget=budget)
        for budget_category in budget.categories:
            spent = await spent_in_window(
                self.aggregator,
                budget.family_id,
                budget_category.category_id,
                budget.start_date,
                budget.end_date,
            )
            details.categories.append(
                build_progress(
                    budget_category,
                    spent,
                    budget.alert_threshold,
                    names.get(budget_category.category_id),
                )
            )
        return details

    async def get_budget_details(self, budget_id: UUID, family_id: UUID) -> BudgetDetails:
        """Get a budget with per-category spend, remaining and alert flags.

        Raises:
            NotFoundError: If not found in the family
        """
        budget = await load_budget(self.db, budget_id, family_id)
        details = await self.describe(budget)

        logger.debug(
            "Budget progress calculated",
            budget_id=str(budget_id),
            family_id=str(family_id),
            categories=len(details.categories),
        )
        return details

    async def create_budget(
        self,
        family_id: UUID,
        user_id: Optional[UUID],
        name: str,
        categories: Sequence[CategoryAllocation],
        period: PeriodUnit | str = PeriodUnit.MONTHLY,
        alert_threshold: Optional[int] = None,
        start_date: Optional[date_type] = None,
    ) -> Budget:
        """Create a budget by hand, not from a template.

        Args:
            family_id: Family ID
            user_id: Creating user
            name: Budget name, unique per family within the period
            categories: Category limits
            period: Period unit
            alert_threshold: Near-limit threshold percent (default from settings)
            start_date: Anchor date (default: first day of the current month)

        Returns:
            Created budget

        Raises:
            ValidationError: If the input is malformed
            NotFoundError: If a category does not exist
            ConflictError: If a budget with this name already covers the period
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Budget name is required")
        alert_threshold = validate_alert_threshold(alert_threshold)
        total = await validate_allocations(self.directory, categories)
        window = resolve_period(period, self.clock(), start_date)

        existing = await find_existing_budget(self.db, family_id, name, window)
        if existing is not None:
            raise ConflictError(
                f"Budget '{name}' already exists for period {window.label}",
                details={"budget_id": str(existing.id), "period_start": str(window.start)},
            )

        budget = Budget(
            family_id=family_id,
            created_by=user_id,
            name=name,
            total_budget=total,
            period=window.unit.value,
            start_date=window.start,
            end_date=window.end,
            alert_threshold=alert_threshold,
            categories=[
                BudgetCategory(
                    category_id=allocation.category_id,
                    position=position,
                    monthly_limit=allocation.monthly_limit,
                    enable_rollover=allocation.enable_rollover,
                    rollover_amount=ZERO,
                )
                for position, allocation in enumerate(categories)
            ],
        )

        async with self.db.begin_nested():
            self.db.add(budget)
            await self.db.flush()

        logger.info(
            "Budget created",
            budget_id=str(budget.id),
            family_id=str(family_id),
            name=name,
            period_start=str(window.start),
            period_end=str(window.end),
            total_budget=str(total),
        )
        return budget

    async def update_budget(
        self,
        budget_id: UUID,
        family_id: UUID,
        name: str,
        categories: Sequence[CategoryAllocation],
        alert_threshold: Optional[int] = None,
    ) -> Budget:
        """Replace a budget's name, threshold and whole category set.

        Rollover amounts are reset to zero: carried-over money does not
        survive an edit.

        Raises:
            NotFoundError: If the budget or a category does not exist
            ValidationError: If the input is malformed
        """
        budget = await load_budget(self.db, budget_id, family_id)

        name = (name or "").strip()
        if not name:
            raise ValidationError("Budget name is required")
        alert_threshold = validate_alert_threshold(alert_threshold)
        total = await validate_allocations(self.directory, categories)

        async with self.db.begin_nested():
            budget.categories.clear()
            await self.db.flush()
            budget.name = name
            budget.total_budget = total
            budget.alert_threshold = alert_threshold
            budget.categories = [
                BudgetCategory(
                    category_id=allocation.category_id,
                    position=position,
                    monthly_limit=allocation.monthly_limit,
                    enable_rollover=allocation.enable_rollover,
                    rollover_amount=ZERO,
                )
                for position, allocation in enumerate(categories)
            ]
            await self.db.flush()

        logger.info(
            "Budget updated",
            budget_id=str(budget_id),
            family_id=str(family_id),
            categories=len(categories),
            total_budget=str(total),
        )
        return budget

    async def delete_budget(self, budget_id: UUID, family_id: UUID) -> None:
        """Delete a budget and its categories.

        Raises:
            NotFoundError: If not found in the family
        """
        budget = await load_budget(self.db, budget_id, family_id)

        await self.db.delete(budget)
        await self.db.flush()

        logger.info("Budget deleted", budget_id=str(budget_id), family_id=str(family_id))
