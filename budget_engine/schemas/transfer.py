"""Transfer schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class TransferRequest(BaseModel):
    """Schema for moving money between two categories of a budget."""

    budget_id: UUID = Field(..., description="Budget ID")
    from_category_id: UUID = Field(..., description="Category giving money")
    to_category_id: UUID = Field(..., description="Category receiving money")
    amount: Decimal = Field(..., gt=0, description="Amount to move")
    reason: Optional[str] = Field(None, max_length=255, description="Audit note")

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        """Validate amount is properly formatted."""
        return round(v, 2)


class TransferLegResponse(BaseModel):
    """One side of a transfer."""

    category_id: UUID
    category_name: Optional[str]
    new_rollover_amount: Decimal

    model_config = {"from_attributes": True}


class TransferResponse(BaseModel):
    """Schema for a completed transfer."""

    budget_id: UUID
    source: TransferLegResponse
    destination: TransferLegResponse
    amount: Decimal
    reason: str
    transferred_at: datetime

    model_config = {"from_attributes": True}


class TransferOptionResponse(BaseModel):
    """A category that could give money."""

    category_id: UUID
    category_name: Optional[str]
    monthly_limit: Decimal
    rollover_amount: Decimal
    current_spent: Decimal
    effective_limit: Decimal
    available: Decimal

    model_config = {"from_attributes": True}


class TransferOptionsResponse(BaseModel):
    """Schema for transfer source candidates."""

    budget_id: UUID
    categories: List[TransferOptionResponse]
    total_available: Decimal

    model_config = {"from_attributes": True}
