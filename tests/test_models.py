"""Tests for database models."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError

from budget_engine.models import (
    Base,
    Budget,
    BudgetCategory,
    BudgetTemplate,
    BudgetTemplateCategory,
    Category,
    Transaction,
)

MODELS = [Category, Transaction, BudgetTemplate, BudgetTemplateCategory, Budget, BudgetCategory]


def constraint_names(model):
    return {c.name for c in inspect(model).local_table.constraints if c.name}


class TestModelDefinitions:
    """Test that all models are properly defined."""

    def test_all_models_inherit_from_base(self):
        """All models should inherit from Base."""
        for model in MODELS:
            assert issubclass(model, Base)

    def test_all_models_have_tablename(self):
        """All models should have __tablename__ defined."""
        expected_names = [
            "categories",
            "transactions",
            "budget_templates",
            "budget_template_categories",
            "budgets",
            "budget_categories",
        ]
        for model, expected_name in zip(MODELS, expected_names):
            assert model.__tablename__ == expected_name

    def test_all_models_have_primary_key(self):
        """All models should have a primary key column named 'id'."""
        for model in MODELS:
            pk_columns = [col.name for col in inspect(model).primary_key]
            assert pk_columns == ["id"]


class TestBudgetModel:
    """Test Budget model definition."""

    def test_budget_required_columns(self):
        """Budget should have all required columns."""
        column_names = {col.name for col in inspect(Budget).columns}

        for col in ("family_id", "template_id", "name", "total_budget", "period",
                    "start_date", "end_date", "alert_threshold"):
            assert col in column_names

    def test_budget_constraints(self):
        """Budget should enforce one generated budget per template and period."""
        names = constraint_names(Budget)

        assert "uq_budget_template_period" in names
        assert "check_budget_period_order" in names
        assert "check_budget_alert_threshold" in names

    def test_budget_category_constraints(self):
        names = constraint_names(BudgetCategory)

        assert "uq_budget_category" in names
        assert "check_budget_limit_positive" in names

    def test_template_constraints(self):
        assert "uq_template_category" in constraint_names(BudgetTemplateCategory)
        assert "check_template_period" in constraint_names(BudgetTemplate)

    def test_effective_limit(self):
        row = BudgetCategory(monthly_limit=Decimal("500"), rollover_amount=Decimal("-120.50"))

        assert row.effective_limit == Decimal("379.50")

    def test_effective_limit_without_rollover(self):
        row = BudgetCategory(monthly_limit=Decimal("500"))

        assert row.effective_limit == Decimal("500")


class TestModelPersistence:
    """Test constraints against the database."""

    async def test_duplicate_template_period_rejected(self, db_session, family_id, categories):
        template = BudgetTemplate(family_id=family_id, name="Food", total_budget=Decimal("100"))
        db_session.add(template)
        await db_session.flush()

        def budget():
            return Budget(
                family_id=family_id,
                template_id=template.id,
                name="Food",
                total_budget=Decimal("100"),
                period="MONTHLY",
                start_date=date(2025, 1, 1),
                end_date=date(2025, 2, 1),
                categories=[
                    BudgetCategory(category_id=categories["food"].id, monthly_limit=Decimal("100"))
                ],
            )

        db_session.add(budget())
        await db_session.flush()

        db_session.add(budget())
        with pytest.raises(IntegrityError):
            await db_session.flush()

    async def test_deleting_budget_cascades(self, db_session, family_id, categories):
        budget = Budget(
            family_id=family_id,
            name="Food",
            total_budget=Decimal("100"),
            period="MONTHLY",
            start_date=date(2025, 1, 1),
            end_date=date(2025, 2, 1),
            categories=[
                BudgetCategory(category_id=categories["food"].id, monthly_limit=Decimal("100"))
            ],
        )
        db_session.add(budget)
        await db_session.flush()
        row_id = budget.categories[0].id

        await db_session.delete(budget)
        await db_session.flush()

        assert await db_session.get(BudgetCategory, row_id) is None

    def test_repr(self):
        budget = Budget(
            id=uuid4(),
            family_id=uuid4(),
            name="Food",
            start_date=date(2025, 1, 1),
            end_date=date(2025, 2, 1),
        )

        assert "Food" in repr(budget)
        assert "2025-01-01" in repr(budget)
