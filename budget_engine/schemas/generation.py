"""Schemas for generation, missing-budget detection and bulk summaries."""

from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from budget_engine.services.period_calculator import PeriodUnit


class PeriodResponse(BaseModel):
    """Schema for a budget period."""

    unit: PeriodUnit
    start: date_type
    end: date_type
    label: str

    model_config = {"from_attributes": True}


class RolloverSeedResponse(BaseModel):
    """Rollover carried into one category of a generated budget."""

    category_id: UUID
    rollover_amount: Decimal
    deficit: Decimal
    status: str
    message: str

    model_config = {"from_attributes": True}


class GeneratedBudgetResponse(BaseModel):
    """Schema for a generated budget."""

    budget_id: UUID
    template_id: UUID
    name: str
    total_budget: Decimal
    period: PeriodResponse
    previous_budget_id: Optional[UUID]
    rollover: List[RolloverSeedResponse]


class MissingBudgetResponse(BaseModel):
    """Schema for a template with no budget in the current period."""

    template_id: UUID
    template_name: str
    limit: Decimal
    category: Optional[Dict[str, object]]
    period: PeriodResponse

    model_config = {"from_attributes": True}


class MissingBudgetListResponse(BaseModel):
    """Missing budget list response."""

    missing: List[MissingBudgetResponse]
    count: int


class GenerateMissingRequest(BaseModel):
    """Schema for the bulk "generate all missing" request."""

    reference_date: Optional[date_type] = Field(
        None, description="Treat this date as today (default: the server's date)"
    )


class GenerationOutcomeResponse(BaseModel):
    """Result of generating one template."""

    template_id: UUID
    template_name: str
    family_id: UUID
    status: str
    period_label: Optional[str]
    budget_id: Optional[UUID]
    amount: Optional[Decimal]
    reason: Optional[str]

    model_config = {"from_attributes": True}


class GenerationSummaryResponse(BaseModel):
    """Aggregate result of a bulk generation or batch sweep."""

    run_month: str
    timestamp: datetime
    total_templates: int
    generated_count: int
    skipped_count: int
    error_count: int
    results: List[GenerationOutcomeResponse]

    model_config = {"from_attributes": True}
