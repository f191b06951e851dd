"""Budget schemas for request/response validation."""

from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from budget_engine.config import settings
from budget_engine.services.budget_service import CategoryAllocation
from budget_engine.services.period_calculator import PeriodUnit


class CategoryLimit(BaseModel):
    """One category line of a budget or template request."""

    category_id: UUID = Field(..., description="Category ID")
    monthly_limit: Decimal = Field(..., gt=0, description="Base limit for the period")
    enable_rollover: bool = Field(default=True, description="Carry unspent money forward")

    @field_validator("monthly_limit")
    @classmethod
    def validate_limit(cls, v: Decimal) -> Decimal:
        """Validate limits are properly formatted."""
        return round(v, 2)

    def to_allocation(self) -> CategoryAllocation:
        return CategoryAllocation(
            category_id=self.category_id,
            monthly_limit=self.monthly_limit,
            enable_rollover=self.enable_rollover,
        )


class BudgetCreate(BaseModel):
    """Schema for creating a budget by hand."""

    name: str = Field(..., min_length=1, max_length=100, description="Budget name")
    categories: List[CategoryLimit] = Field(..., min_length=1, description="Category limits")
    period: PeriodUnit = Field(
        default_factory=lambda: PeriodUnit(settings.default_period), description="Period unit"
    )
    alert_threshold: Optional[int] = Field(None, ge=0, le=100, description="Near-limit percent")
    start_date: Optional[date_type] = Field(None, description="Period anchor date")

    @field_validator("categories")
    @classmethod
    def validate_unique_categories(cls, v: List[CategoryLimit]) -> List[CategoryLimit]:
        """Validate no category is listed twice."""
        ids = [c.category_id for c in v]
        if len(ids) != len(set(ids)):
            raise ValueError("Each category may appear only once")
        return v


class BudgetUpdate(BaseModel):
    """Schema for replacing a budget's name, threshold and categories."""

    name: str = Field(..., min_length=1, max_length=100, description="Budget name")
    categories: List[CategoryLimit] = Field(..., min_length=1, description="Category limits")
    alert_threshold: Optional[int] = Field(None, ge=0, le=100, description="Near-limit percent")

    @field_validator("categories")
    @classmethod
    def validate_unique_categories(cls, v: List[CategoryLimit]) -> List[CategoryLimit]:
        """Validate no category is listed twice."""
        ids = [c.category_id for c in v]
        if len(ids) != len(set(ids)):
            raise ValueError("Each category may appear only once")
        return v


class BudgetCategoryResponse(BaseModel):
    """Schema for a budget category line."""

    id: UUID
    category_id: UUID
    monthly_limit: Decimal
    rollover_amount: Decimal
    enable_rollover: bool
    effective_limit: Decimal

    model_config = {"from_attributes": True}


class BudgetResponse(BaseModel):
    """Schema for budget response."""

    id: UUID
    family_id: UUID
    template_id: Optional[UUID]
    created_by: Optional[UUID]
    name: str
    total_budget: Decimal
    period: str
    start_date: date_type
    end_date: date_type
    alert_threshold: int
    categories: List[BudgetCategoryResponse]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CategoryProgressResponse(BaseModel):
    """Schema for per-category progress of a budget."""

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

    model_config = {"from_attributes": True}


class BudgetDetailsResponse(BaseModel):
    """Schema for a budget with derived spend figures."""

    budget: BudgetResponse
    categories: List[CategoryProgressResponse]
    total_spent: Decimal
    total_limit: Decimal
    total_remaining: Decimal
    total_percentage: float
    is_over_budget: bool
    is_near_limit: bool

    model_config = {"from_attributes": True}


class GenerateBudgetRequest(BaseModel):
    """Schema for generating a budget from a template."""

    template_id: UUID = Field(..., description="Template to materialize")
    start_date: Optional[date_type] = Field(
        None, description="Period anchor date (default: first day of the current month)"
    )
