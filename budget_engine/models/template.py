"""Budget template models: reusable blueprints materialized every period."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
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


class BudgetTemplate(Base):
    """Reusable budget blueprint, soft-deleted through ``is_active``."""

    __tablename__ = "budget_templates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    family_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    total_budget: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    period: Mapped[str] = mapped_column(String(10), nullable=False, default="MONTHLY")
    alert_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=80)
    auto_generate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_generated: Mapped[Optional[datetime]] = mapped_column(DateTime)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    categories: Mapped[list["BudgetTemplateCategory"]] = relationship(
        "BudgetTemplateCategory",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="BudgetTemplateCategory.position",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "period IN ('WEEKLY', 'MONTHLY', 'QUARTERLY', 'YEARLY')",
            name="check_template_period",
        ),
        CheckConstraint(
            "alert_threshold >= 0 AND alert_threshold <= 100",
            name="check_template_alert_threshold",
        ),
        Index("idx_templates_family_active", "family_id", "is_active", "auto_generate"),
    )

    def __repr__(self) -> str:
        """String representation of BudgetTemplate."""
        return (
            f"<BudgetTemplate(id={self.id}, family_id={self.family_id}, "
            f"name={self.name}, period={self.period})>"
        )


class BudgetTemplateCategory(Base):
    """Per-category limit of a template."""

    __tablename__ = "budget_template_categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("budget_templates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    monthly_limit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    enable_rollover: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Relationships
    template: Mapped["BudgetTemplate"] = relationship("BudgetTemplate", back_populates="categories")

    __table_args__ = (
        UniqueConstraint("template_id", "category_id", name="uq_template_category"),
        CheckConstraint("monthly_limit > 0", name="check_template_limit_positive"),
    )

    def __repr__(self) -> str:
        """String representation of BudgetTemplateCategory."""
        return (
            f"<BudgetTemplateCategory(template_id={self.template_id}, "
            f"category_id={self.category_id}, monthly_limit={self.monthly_limit})>"
        )
