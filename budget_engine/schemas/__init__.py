"""Schemas package."""

from budget_engine.schemas.budget import (
    BudgetCreate,
    BudgetDetailsResponse,
    BudgetResponse,
    BudgetUpdate,
    CategoryLimit,
    GenerateBudgetRequest,
)
from budget_engine.schemas.template import TemplateCreate, TemplateResponse, TemplateUpdate

__all__ = [
    "BudgetCreate",
    "BudgetDetailsResponse",
    "BudgetResponse",
    "BudgetUpdate",
    "CategoryLimit",
    "GenerateBudgetRequest",
    "TemplateCreate",
    "TemplateResponse",
    "TemplateUpdate",
]
