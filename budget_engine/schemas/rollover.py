"""Rollover schemas for request/response validation."""

from datetime import date as date_type
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class RolloverPreviewRequest(BaseModel):
    """Schema for a rollover preview."""

    budget_id: UUID = Field(..., description="Budget whose period just ended")
    month: Optional[date_type] = Field(
        None, description="Measure spend over this month instead of the budget's own window"
    )


class RolloverApplyRequest(BaseModel):
    """Schema for carrying one budget's rollover into the next."""

    budget_id: UUID = Field(..., description="Budget whose period ended")
    next_budget_id: UUID = Field(..., description="Budget that receives the rollover")

    @field_validator("next_budget_id")
    @classmethod
    def validate_distinct(cls, v: UUID, info) -> UUID:
        """Validate the two budgets differ."""
        if "budget_id" in info.data and v == info.data["budget_id"]:
            raise ValueError("next_budget_id must differ from budget_id")
        return v


class RolloverResultResponse(BaseModel):
    """Schema for one category's rollover."""

    category_id: UUID
    category_name: Optional[str]
    rollover_amount: Decimal
    deficit: Decimal
    status: str
    message: str
    spent: Decimal
    effective_limit: Decimal

    model_config = {"from_attributes": True}


class RolloverPreviewResponse(BaseModel):
    """Schema for a rollover preview or apply result."""

    budget_id: UUID
    period_start: date_type
    period_end: date_type
    categories: List[RolloverResultResponse]
    total_rollover: Decimal
    total_deficit: Decimal

    model_config = {"from_attributes": True}
