"""Database models package."""

from budget_engine.models.base import Base
from budget_engine.models.category import Category
from budget_engine.models.transaction import Transaction
from budget_engine.models.template import BudgetTemplate, BudgetTemplateCategory
from budget_engine.models.budget import Budget, BudgetCategory

__all__ = [
    "Base",
    "Category",
    "Transaction",
    "BudgetTemplate",
    "BudgetTemplateCategory",
    "Budget",
    "BudgetCategory",
]
