"""Budget template schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from budget_engine.config import settings
from budget_engine.schemas.budget import CategoryLimit
from budget_engine.services.period_calculator import PeriodUnit


def _unique(categories: List[CategoryLimit]) -> List[CategoryLimit]:
    ids = [c.category_id for c in categories]
    if len(ids) != len(set(ids)):
        raise ValueError("Each category may appear only once")
    return categories


class TemplateCreate(BaseModel):
    """Schema for creating a budget template."""

    name: str = Field(..., min_length=1, max_length=100, description="Template name")
    categories: List[CategoryLimit] = Field(..., min_length=1, description="Category limits")
    period: PeriodUnit = Field(
        default_factory=lambda: PeriodUnit(settings.default_period), description="Period unit"
    )
    alert_threshold: Optional[int] = Field(None, ge=0, le=100, description="Near-limit percent")
    auto_generate: bool = Field(default=True, description="Generate automatically each period")

    @field_validator("categories")
    @classmethod
    def validate_unique_categories(cls, v: List[CategoryLimit]) -> List[CategoryLimit]:
        """Validate no category is listed twice."""
        return _unique(v)


class TemplateUpdate(BaseModel):
    """Schema for replacing a template's settings and categories."""

    name: str = Field(..., min_length=1, max_length=100, description="Template name")
    categories: List[CategoryLimit] = Field(..., min_length=1, description="Category limits")
    alert_threshold: Optional[int] = Field(None, ge=0, le=100, description="Near-limit percent")
    auto_generate: Optional[bool] = Field(None, description="Generate automatically each period")

    @field_validator("categories")
    @classmethod
    def validate_unique_categories(cls, v: List[CategoryLimit]) -> List[CategoryLimit]:
        """Validate no category is listed twice."""
        return _unique(v)


class TemplateCategoryResponse(BaseModel):
    """Schema for a template category line."""

    id: UUID
    category_id: UUID
    monthly_limit: Decimal
    enable_rollover: bool

    model_config = {"from_attributes": True}


class TemplateResponse(BaseModel):
    """Schema for budget template response."""

    id: UUID
    family_id: UUID
    created_by: Optional[UUID]
    name: str
    total_budget: Decimal
    period: str
    alert_threshold: int
    auto_generate: bool
    last_generated: Optional[datetime]
    is_active: bool
    categories: List[TemplateCategoryResponse]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
