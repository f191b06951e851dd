"""Ledger transaction model, read by the spend aggregator."""

from __future__ import annotations

import uuid
from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Numeric,
    ForeignKey,
    Index,
    CheckConstraint,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from budget_engine.models.base import Base, utcnow


class Transaction(Base):
    """Append-only ledger entry. Expenses may be stored signed."""

    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    family_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    date: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        CheckConstraint("type IN ('INCOME', 'EXPENSE')", name="check_transaction_type"),
        Index("idx_transactions_family_category_date", "family_id", "category_id", "date"),
    )

    def __repr__(self) -> str:
        """String representation of Transaction."""
        return (
            f"<Transaction(id={self.id}, family_id={self.family_id}, "
            f"amount={self.amount}, type={self.type})>"
        )
