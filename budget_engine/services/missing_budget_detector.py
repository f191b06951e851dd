"""Missing-budget detection and the bulk "generate all missing" remediation.

Bulk generation is best effort: every template is generated in its own
savepoint, and one template's failure never aborts the others.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from budget_engine.exceptions import BudgetEngineError, ConflictError, NotFoundError
from budget_engine.logging_config import get_logger
from budget_engine.metrics.engine_metrics import engine_metrics
from budget_engine.services.budget_generator import BudgetGenerator
from budget_engine.services.budget_service import find_existing_budget
from budget_engine.services.category_directory import CategoryDirectory
from budget_engine.services.period_calculator import Period, default_anchor, resolve_period
from budget_engine.services.spend_aggregator import SpendAggregator
from budget_engine.services.template_service import TemplateService

logger = get_logger(__name__)

GENERATED = "generated"
SKIPPED = "skipped"
ERROR = "error"


@dataclass
class MissingBudget:
    """An auto-generating template with no budget for the current period."""

    template_id: UUID
    template_name: str
    limit: Decimal
    category: Optional[Dict[str, object]]
    period: Period


@dataclass
class GenerationOutcome:
    """Result of generating one template."""

    template_id: UUID
    template_name: str
    family_id: UUID
    status: str  # generated, skipped, error
    period_label: Optional[str] = None
    budget_id: Optional[UUID] = None
    amount: Optional[Decimal] = None
    reason: Optional[str] = None


@dataclass
class GenerationSummary:
    """Aggregate result of a bulk generation.

    ``run_month`` is the month of the run's reference date; the period each
    template was generated for is on its outcome.
    """

    run_month: str
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc).replace(tzinfo=None)
    )
    results: List[GenerationOutcome] = field(default_factory=list)

    @property
    def total_templates(self) -> int:
        return len(self.results)

    @property
    def generated_count(self) -> int:
        return sum(1 for r in self.results if r.status == GENERATED)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.status == SKIPPED)

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if r.status == ERROR)


async def generate_one(
    generator: BudgetGenerator,
    template_id: UUID,
    template_name: str,
    family_id: UUID,
    trigger: str,
    created_by: Optional[UUID] = None,
    period_label: Optional[str] = None,
) -> GenerationOutcome:
    """Generate one template, folding engine errors into an outcome.

    Conflicts and vanished templates are skips; every other engine error is
    recorded as an error. Nothing is raised for engine errors.
    """
    try:
        generated = await generator.generate(
            template_id, family_id=family_id, created_by=created_by, trigger=trigger
        )
    except (ConflictError, NotFoundError) as e:
        engine_metrics.generation_skipped.labels(trigger=trigger).inc()
        logger.info(
            "Budget generation skipped",
            template_id=str(template_id),
            family_id=str(family_id),
            reason=e.message,
        )
        return GenerationOutcome(
            template_id=template_id,
            template_name=template_name,
            family_id=family_id,
            status=SKIPPED,
            period_label=period_label,
            reason=e.message,
        )
    except BudgetEngineError as e:
        engine_metrics.generation_errors.labels(trigger=trigger, error=type(e).__name__).inc()
        logger.error(
            "Budget generation failed",
            template_id=str(template_id),
            family_id=str(family_id),
            error=e.message,
            retryable=e.retryable,
        )
        return GenerationOutcome(
            template_id=template_id,
            template_name=template_name,
            family_id=family_id,
            status=ERROR,
            period_label=period_label,
            reason=e.message,
        )

    return GenerationOutcome(
        template_id=template_id,
        template_name=template_name,
        family_id=family_id,
        status=GENERATED,
        period_label=generated.period.label,
        budget_id=generated.budget.id,
        amount=generated.budget.total_budget,
    )


class MissingBudgetDetector:
    """Finds auto-generating templates without a budget and fills the gaps."""

    def __init__(
        self,
        db: AsyncSession,
        aggregator: Optional[SpendAggregator] = None,
        clock: Callable[[], date] = date.today,
    ):
        """Initialize missing-budget detector.

        Args:
            db: Database session
            aggregator: Spend aggregator used to seed rollover on generation
            clock: Source of "today"
        """
        self.db = db
        self.aggregator = aggregator
        self.clock = clock
        self.templates = TemplateService(db)
        self.directory = CategoryDirectory(db)

    async def find_missing(
        self, family_id: UUID, reference_date: Optional[date] = None
    ) -> List[MissingBudget]:
        """List auto-generating templates of a family with no budget for the current period.

        Args:
            family_id: Family ID
            reference_date: "Today" (default: the injected clock)

        Returns:
            Missing budgets, one per template
        """
        today = reference_date or self.clock()
        templates = await self.templates.list_auto_generating(family_id)

        first_categories = [t.categories[0].category_id for t in templates if t.categories]
        summaries = await self.directory.get_many(first_categories)

        missing = []
        for template in templates:
            if not template.categories:
                continue
            period = resolve_period(template.period, today)
            existing = await find_existing_budget(
                self.db, family_id, template.name, period, template_id=template.id
            )
            if existing is None:
                missing.append(
                    MissingBudget(
                        template_id=template.id,
                        template_name=template.name,
                        limit=template.total_budget,
                        category=summaries.get(template.categories[0].category_id),
                        period=period,
                    )
                )

        logger.debug(
            "Missing budgets checked",
            family_id=str(family_id),
            templates=len(templates),
            missing=len(missing),
        )
        return missing

    async def generate_missing(
        self,
        family_id: UUID,
        user_id: Optional[UUID] = None,
        reference_date: Optional[date] = None,
    ) -> GenerationSummary:
        """Generate the current-period budget of every missing template.

        Args:
            family_id: Family ID
            user_id: User recorded as creator of the generated budgets
            reference_date: "Today" (default: the injected clock)

        Returns:
            GenerationSummary: Per-template outcomes and counts
        """
        today = reference_date or self.clock()
        missing = await self.find_missing(family_id, today)
        generator = BudgetGenerator(self.db, self.aggregator, clock=lambda: today)

        summary = GenerationSummary(run_month=f"{default_anchor(today):%Y-%m}")
        for entry in missing:
            summary.results.append(
                await generate_one(
                    generator,
                    entry.template_id,
                    entry.template_name,
                    family_id,
                    trigger="bulk",
                    created_by=user_id,
                    period_label=entry.period.label,
                )
            )

        logger.info(
            "Missing budgets generated",
            family_id=str(family_id),
            run_month=summary.run_month,
            generated=summary.generated_count,
            skipped=summary.skipped_count,
            errors=summary.error_count,
        )
        return summary
