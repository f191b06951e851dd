"""Category model backing the category directory."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Uuid, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from budget_engine.models.base import Base, utcnow


class Category(Base):
    """Spending category. Rows with no family are shared defaults."""

    __tablename__ = "categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    family_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(20))
    icon: Mapped[Optional[str]] = mapped_column(String(50))
    type: Mapped[str] = mapped_column(String(10), nullable=False, default="EXPENSE")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("type IN ('INCOME', 'EXPENSE')", name="check_category_type"),
    )

    def __repr__(self) -> str:
        """String representation of Category."""
        return f"<Category(id={self.id}, name={self.name})>"
