"""Batch sweep invoked by the external scheduler once per period.

Generates the current-period budget of every active auto-generating template
across all families. Each template runs in its own session and commits on
its own, so the sweep is idempotent and partial success is kept.
"""

from datetime import date
from typing import Callable, Optional

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from budget_engine.logging_config import get_logger
from budget_engine.metrics.engine_metrics import engine_metrics
from budget_engine.services.budget_generator import BudgetGenerator
from budget_engine.services.missing_budget_detector import (
    ERROR,
    GENERATED,
    GenerationSummary,
    generate_one,
)
from budget_engine.services.period_calculator import default_anchor, resolve_period
from budget_engine.services.spend_aggregator import SpendAggregator, SqlSpendAggregator
from budget_engine.services.template_service import TemplateService

logger = get_logger(__name__)

TRIGGER = "scheduler"


class BatchScheduler:
    """Sweeps every auto-generating template once per period."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        aggregator_factory: Callable[[AsyncSession], SpendAggregator] = SqlSpendAggregator,
        clock: Callable[[], date] = date.today,
    ):
        """Initialize batch scheduler.

        Args:
            session_factory: Factory for per-template sessions
            aggregator_factory: Builds the spend aggregator for a session
            clock: Source of "today"
        """
        self.session_factory = session_factory
        self.aggregator_factory = aggregator_factory
        self.clock = clock

    async def run(self, reference_date: Optional[date] = None) -> GenerationSummary:
        """Generate the current-period budget of every auto-generating template.

        Args:
            reference_date: "Today" (default: the injected clock)

        Returns:
            GenerationSummary: Per-template outcomes and counts
        """
        today = reference_date or self.clock()
        summary = GenerationSummary(run_month=f"{default_anchor(today):%Y-%m}")

        async with self.session_factory() as session:
            templates = [
                (t.id, t.name, t.family_id, resolve_period(t.period, today).label)
                for t in await TemplateService(session).list_auto_generating()
            ]

        logger.info(
            "Starting budget generation sweep",
            run_month=summary.run_month,
            templates=len(templates),
        )

        for template_id, template_name, family_id, period_label in templates:
            async with self.session_factory() as session:
                generator = BudgetGenerator(
                    session, self.aggregator_factory(session), clock=lambda: today
                )
                outcome = await generate_one(
                    generator,
                    template_id,
                    template_name,
                    family_id,
                    trigger=TRIGGER,
                    period_label=period_label,
                )
                if outcome.status == GENERATED:
                    try:
                        await session.commit()
                    except DBAPIError as e:
                        await session.rollback()
                        engine_metrics.generation_errors.labels(
                            trigger=TRIGGER, error="StorageFailure"
                        ).inc()
                        logger.error(
                            "Budget generation commit failed",
                            template_id=str(template_id),
                            family_id=str(family_id),
                            error=str(e),
                        )
                        outcome.status = ERROR
                        outcome.budget_id = None
                        outcome.reason = "Could not store the generated budget"
                else:
                    await session.rollback()
            summary.results.append(outcome)

        logger.info(
            "Budget generation sweep completed",
            run_month=summary.run_month,
            total_templates=summary.total_templates,
            generated=summary.generated_count,
            skipped=summary.skipped_count,
            errors=summary.error_count,
        )
        return summary
