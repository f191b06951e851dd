"""Budget generator: materializes a template into a dated budget for one period.

A template produces at most one budget per period. The pre-insert existence
check handles the common case; the ``uq_budget_template_period`` unique
constraint settles races between concurrent triggers, and its violation is
reported as the same conflict.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, Optional
from uuid import UUID

from sqlalchemy import select, and_, or_
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from budget_engine.exceptions import ConflictError, StorageFailure, ValidationError
from budget_engine.logging_config import get_logger
from budget_engine.metrics.engine_metrics import engine_metrics
from budget_engine.models.budget import Budget, BudgetCategory
from budget_engine.models.template import BudgetTemplate
from budget_engine.services.budget_service import find_existing_budget
from budget_engine.services.period_calculator import Period, previous_period, resolve_period
from budget_engine.services.rollover_calculator import RolloverResult, compute_budget_rollover
from budget_engine.services.spend_aggregator import SpendAggregator, SqlSpendAggregator
from budget_engine.services.template_service import TemplateService

logger = get_logger(__name__)

ZERO = Decimal("0")


@dataclass
class GeneratedBudget:
    """A freshly generated budget and the rollover that seeded it."""

    budget: Budget
    period: Period
    previous_budget_id: Optional[UUID]
    rollover: Dict[UUID, RolloverResult]


class BudgetGenerator:
    """Generates budgets from templates."""

    def __init__(
        self,
        db: AsyncSession,
        aggregator: Optional[SpendAggregator] = None,
        clock: Callable[[], date] = date.today,
    ):
        """Initialize budget generator.

        Args:
            db: Database session
            aggregator: Spend aggregator (defaults to the SQL ledger)
            clock: Source of "today" for the default anchor
        """
        self.db = db
        self.aggregator = aggregator or SqlSpendAggregator(db)
        self.templates = TemplateService(db)
        self.clock = clock

    async def find_previous_budget(self, template: BudgetTemplate, period: Period) -> Optional[Budget]:
        """Budget of the template covering the period right before ``period``."""
        previous = previous_period(template.period, period.start)
        stmt = (
            select(Budget)
            .where(
                and_(
                    Budget.family_id == template.family_id,
                    or_(Budget.template_id == template.id, Budget.name == template.name),
                    Budget.start_date >= previous.start,
                    Budget.start_date < period.start,
                )
            )
            .order_by(Budget.start_date.desc())
            .limit(1)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def generate(
        self,
        template_id: UUID,
        family_id: Optional[UUID] = None,
        start_date: Optional[date] = None,
        created_by: Optional[UUID] = None,
        trigger: str = "manual",
    ) -> GeneratedBudget:
        """Generate the budget of a template for one period.

        Args:
            template_id: Template ID
            family_id: Restrict to templates of this family (None for the scheduler)
            start_date: Anchor date (default: first day of the current month)
            created_by: User recorded as creator (default: the template's creator)
            trigger: Label for metrics: manual, bulk or scheduler

        Returns:
            GeneratedBudget: The new budget with its seeded rollover

        Raises:
            NotFoundError: If the template does not exist or is inactive
            ValidationError: If the template has no categories
            ConflictError: If a budget already exists for the period
            StorageFailure: On transient database errors
        """
        try:
            template = await self.templates.get_template(template_id, family_id)
            if not template.categories:
                raise ValidationError(
                    f"Budget template '{template.name}' has no categories",
                    details={"template_id": str(template.id)},
                )

            period = resolve_period(template.period, self.clock(), start_date)

            existing = await find_existing_budget(
                self.db, template.family_id, template.name, period, template_id=template.id
            )
            if existing is not None:
                raise self._conflict(template, period, existing.id)

            previous = await self.find_previous_budget(template, period)
            rollover: Dict[UUID, RolloverResult] = {}
            if previous is not None:
                rollover = (
                    await compute_budget_rollover(previous, self.aggregator)
                ).by_category()
        except DBAPIError as e:
            raise StorageFailure(
                f"Could not read budget template {template_id}",
                details={"template_id": str(template_id)},
            ) from e

        budget = Budget(
            family_id=template.family_id,
            template_id=template.id,
            created_by=created_by or template.created_by,
            name=template.name,
            total_budget=template.total_budget,
            period=period.unit.value,
            start_date=period.start,
            end_date=period.end,
            alert_threshold=template.alert_threshold,
            categories=[
                BudgetCategory(
                    category_id=template_category.category_id,
                    position=position,
                    monthly_limit=template_category.monthly_limit,
                    enable_rollover=template_category.enable_rollover,
                    rollover_amount=self._seed_rollover(
                        template_category.enable_rollover,
                        rollover.get(template_category.category_id),
                    ),
                )
                for position, template_category in enumerate(template.categories)
            ],
        )

        # Built up front: a rolled back savepoint expires the template
        conflict = self._conflict(template, period)
        storage_failure = StorageFailure(
            f"Could not store budget '{template.name}' for period {period.label}",
            details={"template_id": str(template.id), "period_start": str(period.start)},
        )

        try:
            async with self.db.begin_nested():
                self.db.add(budget)
                template.last_generated = datetime.now(timezone.utc).replace(tzinfo=None)
                await self.db.flush()
        except IntegrityError as e:
            # Another trigger inserted the same period first
            logger.info(
                "Concurrent generation detected",
                template_id=conflict.details["template_id"],
                period_start=str(period.start),
                error=str(e.orig),
            )
            raise conflict from e
        except DBAPIError as e:
            raise storage_failure from e

        engine_metrics.budgets_generated.labels(trigger=trigger).inc()
        logger.info(
            "Budget generated",
            budget_id=str(budget.id),
            template_id=str(template.id),
            family_id=str(template.family_id),
            period_start=str(period.start),
            period_end=str(period.end),
            previous_budget_id=str(previous.id) if previous else None,
            total_rollover=str(sum((b.rollover_amount for b in budget.categories), ZERO)),
            trigger=trigger,
        )

        return GeneratedBudget(
            budget=budget,
            period=period,
            previous_budget_id=previous.id if previous else None,
            rollover=rollover,
        )

    @staticmethod
    def _seed_rollover(enable_rollover: bool, result: Optional[RolloverResult]) -> Decimal:
        if not enable_rollover or result is None:
            return ZERO
        return result.rollover_amount

    @staticmethod
    def _conflict(
        template: BudgetTemplate, period: Period, budget_id: Optional[UUID] = None
    ) -> ConflictError:
        details = {
            "template_id": str(template.id),
            "template_name": template.name,
            "period_start": str(period.start),
            "period_end": str(period.end),
        }
        if budget_id is not None:
            details["budget_id"] = str(budget_id)
        return ConflictError(
            f"Budget '{template.name}' already exists for period {period.label}",
            details=details,
        )
