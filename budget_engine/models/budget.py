"""Budget models: dated period instances and their category rows."""

from __future__ import annotations

import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from budget_engine.models.base import Base, utcnow


class Budget(Base):
    """One materialized period ``[start_date, end_date)`` of a budget."""

    __tablename__ = "budgets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    family_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    template_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("budget_templates.id", ondelete="SET NULL"), index=True
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    total_budget: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    period: Mapped[str] = mapped_column(String(10), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    alert_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=80)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    categories: Mapped[list["BudgetCategory"]] = relationship(
        "BudgetCategory",
        back_populates="budget",
        cascade="all, delete-orphan",
        order_by="BudgetCategory.position",
        lazy="selectin",
    )

    __table_args__ = (
        # At most one generated budget per template and period start
        UniqueConstraint("family_id", "template_id", "start_date", name="uq_budget_template_period"),
        CheckConstraint("start_date < end_date", name="check_budget_period_order"),
        CheckConstraint(
            "period IN ('WEEKLY', 'MONTHLY', 'QUARTERLY', 'YEARLY')",
            name="check_budget_period",
        ),
        CheckConstraint(
            "alert_threshold >= 0 AND alert_threshold <= 100",
            name="check_budget_alert_threshold",
        ),
        Index("idx_budgets_family_name_start", "family_id", "name", "start_date"),
    )

    def __repr__(self) -> str:
        """String representation of Budget."""
        return (
            f"<Budget(id={self.id}, family_id={self.family_id}, "
            f"name={self.name}, period={self.start_date} to {self.end_date})>"
        )


class BudgetCategory(Base):
    """Category row of a budget. ``rollover_amount`` is the only field mutated after creation."""

    __tablename__ = "budget_categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    budget_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("budgets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    monthly_limit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    enable_rollover: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    rollover_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    budget: Mapped["Budget"] = relationship("Budget", back_populates="categories")

    __table_args__ = (
        UniqueConstraint("budget_id", "category_id", name="uq_budget_category"),
        CheckConstraint("monthly_limit > 0", name="check_budget_limit_positive"),
    )

    @property
    def effective_limit(self) -> Decimal:
        """Spendable ceiling for the period: limit plus rollover."""
        return Decimal(self.monthly_limit) + Decimal(self.rollover_amount or 0)

    def __repr__(self) -> str:
        """String representation of BudgetCategory."""
        return (
            f"<BudgetCategory(budget_id={self.budget_id}, category_id={self.category_id}, "
            f"monthly_limit={self.monthly_limit}, rollover_amount={self.rollover_amount})>"
        )
