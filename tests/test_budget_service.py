"""Tests for budget service."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from budget_engine.exceptions import ConflictError, NotFoundError, ValidationError
from budget_engine.models import Budget, BudgetCategory
from budget_engine.services.budget_service import (
    BudgetService,
    CategoryAllocation,
    percentage,
)


@pytest.fixture
async def budget_service(db_session):
    """Create budget service instance."""
    return BudgetService(db_session, clock=lambda: date(2025, 2, 10))


@pytest.fixture
async def sample_budget(budget_service, family_id, user_id, categories):
    """February budget: Food 500, Dining 300, Transport 200."""
    return await budget_service.create_budget(
        family_id=family_id,
        user_id=user_id,
        name="Monthly Budget",
        categories=[
            CategoryAllocation(category_id=categories["food"].id, monthly_limit=Decimal("500")),
            CategoryAllocation(category_id=categories["dining"].id, monthly_limit=Decimal("300")),
            CategoryAllocation(
                category_id=categories["transport"].id, monthly_limit=Decimal("200")
            ),
        ],
        alert_threshold=75,
    )


class TestCreateBudget:
    """Tests for budget creation."""

    async def test_create_budget_success(self, sample_budget, family_id):
        assert sample_budget.family_id == family_id
        assert sample_budget.template_id is None
        assert sample_budget.total_budget == Decimal("1000")
        assert sample_budget.start_date == date(2025, 2, 1)
        assert sample_budget.end_date == date(2025, 3, 1)
        assert sample_budget.alert_threshold == 75
        assert len(sample_budget.categories) == 3

    async def test_duplicate_name_in_period_is_conflict(
        self, budget_service, sample_budget, family_id, categories
    ):
        with pytest.raises(ConflictError, match="Monthly Budget"):
            await budget_service.create_budget(
                family_id,
                None,
                "Monthly Budget",
                [CategoryAllocation(category_id=categories["food"].id, monthly_limit=Decimal("1"))],
                start_date=date(2025, 2, 20),
            )

    async def test_same_name_in_next_period_is_allowed(
        self, budget_service, sample_budget, family_id, categories
    ):
        march = await budget_service.create_budget(
            family_id,
            None,
            "Monthly Budget",
            [CategoryAllocation(category_id=categories["food"].id, monthly_limit=Decimal("1"))],
            start_date=date(2025, 3, 1),
        )

        assert march.start_date == date(2025, 3, 1)

    async def test_create_budget_requires_name(self, budget_service, family_id, categories):
        with pytest.raises(ValidationError):
            await budget_service.create_budget(
                family_id,
                None,
                "",
                [CategoryAllocation(category_id=categories["food"].id, monthly_limit=Decimal("1"))],
            )

    async def test_create_budget_unknown_category(self, budget_service, family_id, categories):
        with pytest.raises(NotFoundError):
            await budget_service.create_budget(
                family_id,
                None,
                "Ghost",
                [CategoryAllocation(category_id=uuid4(), monthly_limit=Decimal("1"))],
            )


class TestBudgetDetails:
    """Tests for derived spend figures."""

    async def test_details_compute_spend_and_flags(
        self, budget_service, sample_budget, family_id, categories, add_expense
    ):
        await add_expense(categories["food"], "400", date(2025, 2, 3))
        await add_expense(categories["dining"], "350", date(2025, 2, 5))
        await add_expense(categories["dining"], "999", date(2025, 1, 31))  # previous month

        details = await budget_service.get_budget_details(sample_budget.id, family_id)

        by_category = {c.category_id: c for c in details.categories}
        food = by_category[categories["food"].id]
        assert food.current_spent == Decimal("400")
        assert food.remaining == Decimal("100")
        assert food.percentage_used == pytest.approx(80.0)
        assert food.is_near_limit is True
        assert food.is_over_budget is False
        assert food.category["name"] == "Food"

        dining = by_category[categories["dining"].id]
        assert dining.is_over_budget is True
        assert dining.is_near_limit is False

        transport = by_category[categories["transport"].id]
        assert transport.current_spent == Decimal("0")
        assert transport.percentage_used == 0.0

        assert details.total_spent == Decimal("750")
        assert details.total_limit == Decimal("1000")
        assert details.total_remaining == Decimal("250")
        assert details.is_over_budget is False
        assert details.is_near_limit is True

    async def test_rollover_raises_effective_limit(
        self, db_session, budget_service, sample_budget, family_id, categories, add_expense
    ):
        food_row = sample_budget.categories[0]
        food_row.rollover_amount = Decimal("100")
        await db_session.flush()
        await add_expense(categories["food"], "540", date(2025, 2, 3))

        details = await budget_service.get_budget_details(sample_budget.id, family_id)

        food = details.categories[0]
        assert food.effective_limit == Decimal("600")
        assert food.remaining == Decimal("60")
        assert food.is_over_budget is False

    async def test_other_family_cannot_read(self, budget_service, sample_budget):
        with pytest.raises(NotFoundError):
            await budget_service.get_budget_details(sample_budget.id, uuid4())

    def test_percentage_of_zero_limit(self):
        assert percentage(Decimal("10"), Decimal("0")) == 0.0


class TestListBudgets:
    """Tests for listing budgets."""

    async def test_list_newest_first_and_active_filter(
        self, budget_service, sample_budget, family_id, categories
    ):
        january = await budget_service.create_budget(
            family_id,
            None,
            "Monthly Budget",
            [CategoryAllocation(category_id=categories["food"].id, monthly_limit=Decimal("1"))],
            start_date=date(2025, 1, 1),
        )

        budgets = await budget_service.list_budgets(family_id)
        active = await budget_service.list_budgets(family_id, active_on=date(2025, 1, 31))

        assert [b.id for b in budgets] == [sample_budget.id, january.id]
        assert [b.id for b in active] == [january.id]


class TestUpdateAndDeleteBudget:
    """Tests for the budget-edit path and deletion."""

    async def test_update_replaces_categories_and_resets_rollover(
        self, db_session, budget_service, sample_budget, family_id, categories
    ):
        sample_budget.categories[0].rollover_amount = Decimal("250")
        await db_session.flush()

        updated = await budget_service.update_budget(
            sample_budget.id,
            family_id,
            name="Lean Budget",
            categories=[
                CategoryAllocation(category_id=categories["food"].id, monthly_limit=Decimal("450")),
                CategoryAllocation(category_id=categories["fun"].id, monthly_limit=Decimal("50")),
            ],
            alert_threshold=90,
        )

        assert updated.name == "Lean Budget"
        assert updated.total_budget == Decimal("500")
        assert updated.alert_threshold == 90
        assert [c.category_id for c in updated.categories] == [
            categories["food"].id,
            categories["fun"].id,
        ]
        assert all(c.rollover_amount == Decimal("0") for c in updated.categories)

        count = await db_session.scalar(
            select(func.count())
            .select_from(BudgetCategory)
            .where(BudgetCategory.budget_id == sample_budget.id)
        )
        assert count == 2

    async def test_update_rejects_bad_threshold(
        self, budget_service, sample_budget, family_id, categories
    ):
        with pytest.raises(ValidationError):
            await budget_service.update_budget(
                sample_budget.id,
                family_id,
                name="Monthly Budget",
                categories=[
                    CategoryAllocation(category_id=categories["food"].id, monthly_limit=Decimal("1"))
                ],
                alert_threshold=150,
            )

    async def test_delete_budget_cascades(
        self, db_session, budget_service, sample_budget, family_id
    ):
        await budget_service.delete_budget(sample_budget.id, family_id)

        assert await db_session.get(Budget, sample_budget.id) is None
        count = await db_session.scalar(
            select(func.count())
            .select_from(BudgetCategory)
            .where(BudgetCategory.budget_id == sample_budget.id)
        )
        assert count == 0

    async def test_delete_missing_budget(self, budget_service, family_id):
        with pytest.raises(NotFoundError):
            await budget_service.delete_budget(uuid4(), family_id)
