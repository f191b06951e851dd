"""Tests for the batch scheduler sweep."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from budget_engine.exceptions import StorageFailure
from budget_engine.models import Budget, Category
from budget_engine.services.batch_scheduler import BatchScheduler
from budget_engine.services.budget_generator import BudgetGenerator
from budget_engine.services.budget_service import CategoryAllocation
from budget_engine.services.template_service import TemplateService

RUN_DATE = date(2025, 2, 3)


class DroppedLedger:
    """Spend aggregator whose connection is lost mid-sweep."""

    def __init__(self, session):
        self.session = session

    async def sum_expenses(self, family_id, category_id, start, end):
        raise OperationalError("SELECT sum(amount)", {}, Exception("connection reset"))


@pytest.fixture
async def seeded(db_session, family_id):
    """Templates across two families, committed so the sweep's sessions see them."""
    other_family = uuid4()
    groceries = Category(family_id=family_id, name="Groceries")
    rent = Category(family_id=other_family, name="Rent")
    db_session.add_all([groceries, rent])
    await db_session.flush()

    service = TemplateService(db_session)
    templates = {
        "food": await service.create_template(
            family_id, None, "Food",
            [CategoryAllocation(category_id=groceries.id, monthly_limit=Decimal("400"))],
        ),
        "holiday": await service.create_template(
            family_id, None, "Holiday",
            [CategoryAllocation(category_id=groceries.id, monthly_limit=Decimal("50"))],
        ),
        "manual": await service.create_template(
            family_id, None, "Manual",
            [CategoryAllocation(category_id=groceries.id, monthly_limit=Decimal("10"))],
            auto_generate=False,
        ),
        "rent": await service.create_template(
            other_family, None, "Rent",
            [CategoryAllocation(category_id=rent.id, monthly_limit=Decimal("1500"))],
        ),
    }
    # Generated earlier this month by hand
    await BudgetGenerator(db_session, clock=lambda: RUN_DATE).generate(templates["holiday"].id)
    await db_session.commit()
    return templates


async def budget_count(db_session) -> int:
    return await db_session.scalar(select(func.count()).select_from(Budget))


class TestBatchScheduler:
    """Tests for the cross-family sweep."""

    async def test_sweep_generates_across_families(self, db_session, session_factory, seeded):
        scheduler = BatchScheduler(session_factory)

        summary = await scheduler.run(RUN_DATE)

        assert summary.run_month == "2025-02"
        assert summary.total_templates == 3
        assert summary.generated_count == 2
        assert summary.skipped_count == 1
        assert summary.error_count == 0
        assert {r.template_name for r in summary.results if r.status == "generated"} == {
            "Food",
            "Rent",
        }
        assert {r.period_label for r in summary.results} == {"2025-02"}
        assert await budget_count(db_session) == 3

    async def test_second_sweep_is_idempotent(self, db_session, session_factory, seeded):
        scheduler = BatchScheduler(session_factory, clock=lambda: RUN_DATE)
        await scheduler.run()

        summary = await scheduler.run()

        assert summary.generated_count == 0
        assert summary.skipped_count == 3
        assert await budget_count(db_session) == 3

    async def test_new_period_generates_again(self, db_session, session_factory, seeded):
        scheduler = BatchScheduler(session_factory)
        await scheduler.run(RUN_DATE)

        summary = await scheduler.run(date(2025, 3, 1))

        assert summary.run_month == "2025-03"
        assert summary.generated_count == 3
        march = (
            await db_session.execute(select(Budget).where(Budget.start_date == date(2025, 3, 1)))
        ).scalars().all()
        assert len(march) == 3

    async def test_failure_keeps_other_templates(
        self, db_session, session_factory, seeded, monkeypatch
    ):
        broken_id = seeded["food"].id
        original = BudgetGenerator.generate

        async def flaky(self, template_id, **kwargs):
            if template_id == broken_id:
                raise StorageFailure("database unavailable")
            return await original(self, template_id, **kwargs)

        monkeypatch.setattr(BudgetGenerator, "generate", flaky)

        summary = await BatchScheduler(session_factory).run(RUN_DATE)

        assert summary.error_count == 1
        assert summary.generated_count == 1
        failed = next(r for r in summary.results if r.status == "error")
        assert failed.template_id == broken_id
        assert await budget_count(db_session) == 2

    async def test_read_failure_is_recorded_and_sweep_continues(
        self, db_session, session_factory, seeded
    ):
        await BudgetGenerator(db_session).generate(
            seeded["food"].id, start_date=date(2025, 1, 1)
        )
        await db_session.commit()

        summary = await BatchScheduler(session_factory, aggregator_factory=DroppedLedger).run(
            RUN_DATE
        )

        assert summary.error_count == 1
        assert summary.generated_count == 1
        assert summary.skipped_count == 1
        failed = next(r for r in summary.results if r.status == "error")
        assert failed.template_name == "Food"
        assert failed.period_label == "2025-02"
        assert "Could not read" in failed.reason
        # January food, February holiday, February rent
        assert await budget_count(db_session) == 3

    async def test_outcome_carries_template_period(
        self, db_session, session_factory, family_id, seeded
    ):
        groceries_id = await db_session.scalar(
            select(Category.id).where(Category.name == "Groceries")
        )
        yearly = await TemplateService(db_session).create_template(
            family_id, None, "Annual fees",
            [CategoryAllocation(category_id=groceries_id, monthly_limit=Decimal("120"))],
            period="YEARLY",
        )
        await db_session.commit()

        summary = await BatchScheduler(session_factory).run(RUN_DATE)

        assert summary.run_month == "2025-02"
        annual = next(r for r in summary.results if r.template_id == yearly.id)
        assert annual.status == "generated"
        assert annual.period_label == "2025"
