"""Template store: CRUD over reusable budget templates.

Category sets are replaced wholesale on every update. Templates are soft
deleted through ``is_active`` and every query filters on it explicitly.
"""

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from budget_engine.exceptions import ConflictError, NotFoundError, ValidationError
from budget_engine.logging_config import get_logger
from budget_engine.models.template import BudgetTemplate, BudgetTemplateCategory
from budget_engine.services.budget_service import (
    CategoryAllocation,
    validate_alert_threshold,
    validate_allocations,
)
from budget_engine.services.category_directory import CategoryDirectory
from budget_engine.services.period_calculator import PeriodUnit

logger = get_logger(__name__)


class TemplateService:
    """Service for managing budget templates."""

    def __init__(self, db: AsyncSession):
        """Initialize template service.

        Args:
            db: Database session
        """
        self.db = db
        self.directory = CategoryDirectory(db)

    async def get_template(
        self, template_id: UUID, family_id: Optional[UUID] = None
    ) -> BudgetTemplate:
        """Get an active template.

        Args:
            template_id: Template ID
            family_id: Restrict the lookup to this family

        Returns:
            The template

        Raises:
            NotFoundError: If the template does not exist or is inactive
        """
        conditions = [BudgetTemplate.id == template_id, BudgetTemplate.is_active.is_(True)]
        if family_id is not None:
            conditions.append(BudgetTemplate.family_id == family_id)

        result = await self.db.execute(select(BudgetTemplate).where(and_(*conditions)))
        template = result.scalar_one_or_none()
        if template is None:
            raise NotFoundError(
                f"Budget template {template_id} not found",
                details={"template_id": str(template_id)},
            )
        return template

    async def list_templates(self, family_id: UUID) -> List[BudgetTemplate]:
        """List active templates of a family, newest first."""
        stmt = (
            select(BudgetTemplate)
            .where(and_(BudgetTemplate.family_id == family_id, BudgetTemplate.is_active.is_(True)))
            .order_by(BudgetTemplate.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_auto_generating(self, family_id: Optional[UUID] = None) -> List[BudgetTemplate]:
        """Active auto-generating templates of one family, or of all families."""
        conditions = [BudgetTemplate.is_active.is_(True), BudgetTemplate.auto_generate.is_(True)]
        if family_id is not None:
            conditions.append(BudgetTemplate.family_id == family_id)

        stmt = (
            select(BudgetTemplate)
            .where(and_(*conditions))
            .order_by(BudgetTemplate.family_id, BudgetTemplate.created_at)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _ensure_unique_name(
        self, family_id: UUID, name: str, exclude_id: Optional[UUID] = None
    ) -> None:
        stmt = select(BudgetTemplate.id).where(
            and_(
                BudgetTemplate.family_id == family_id,
                BudgetTemplate.name == name,
                BudgetTemplate.is_active.is_(True),
            )
        )
        if exclude_id is not None:
            stmt = stmt.where(BudgetTemplate.id != exclude_id)

        if (await self.db.execute(stmt.limit(1))).scalar_one_or_none() is not None:
            raise ConflictError(
                f"A budget template named '{name}' already exists",
                details={"name": name},
            )

    async def create_template(
        self,
        family_id: UUID,
        user_id: Optional[UUID],
        name: str,
        categories: Sequence[CategoryAllocation],
        period: PeriodUnit | str = PeriodUnit.MONTHLY,
        alert_threshold: Optional[int] = None,
        auto_generate: bool = True,
    ) -> BudgetTemplate:
        """Create a new template.

        Args:
            family_id: Family ID
            user_id: Creating user, recorded on generated budgets
            name: Template name, unique per family among active templates
            categories: Category limits (at least one)
            period: Period unit
            alert_threshold: Near-limit threshold percent (default 80)
            auto_generate: Materialize automatically every period

        Returns:
            Created template

        Raises:
            ValidationError: If the input is malformed
            NotFoundError: If a category does not exist
            ConflictError: If the name is taken
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Template name is required")
        try:
            period = PeriodUnit(period)
        except ValueError:
            raise ValidationError(f"Unknown period '{period}'", details={"period": str(period)})
        alert_threshold = validate_alert_threshold(alert_threshold)
        total = await validate_allocations(self.directory, categories)
        await self._ensure_unique_name(family_id, name)

        template = BudgetTemplate(
            family_id=family_id,
            created_by=user_id,
            name=name,
            total_budget=total,
            period=period.value,
            alert_threshold=alert_threshold,
            auto_generate=auto_generate,
            is_active=True,
            categories=self._build_categories(categories),
        )
        self.db.add(template)
        await self.db.flush()

        logger.info(
            "Budget template created",
            template_id=str(template.id),
            family_id=str(family_id),
            name=name,
            period=period.value,
            categories=len(categories),
            total_budget=str(total),
        )
        return template

    async def update_template(
        self,
        template_id: UUID,
        family_id: UUID,
        name: str,
        categories: Sequence[CategoryAllocation],
        alert_threshold: Optional[int] = None,
        auto_generate: Optional[bool] = None,
    ) -> BudgetTemplate:
        """Replace a template's name, settings and whole category set.

        Budgets already generated from the template are not touched.

        Raises:
            NotFoundError: If the template or a category does not exist
            ValidationError: If the input is malformed
            ConflictError: If the new name is taken by another template
        """
        template = await self.get_template(template_id, family_id)

        name = (name or "").strip()
        if not name:
            raise ValidationError("Template name is required")
        alert_threshold = validate_alert_threshold(alert_threshold)
        total = await validate_allocations(self.directory, categories)
        await self._ensure_unique_name(family_id, name, exclude_id=template.id)

        async with self.db.begin_nested():
            template.categories.clear()
            await self.db.flush()
            template.name = name
            template.total_budget = total
            template.alert_threshold = alert_threshold
            if auto_generate is not None:
                template.auto_generate = auto_generate
            template.categories = self._build_categories(categories)
            await self.db.flush()

        logger.info(
            "Budget template updated",
            template_id=str(template_id),
            family_id=str(family_id),
            categories=len(categories),
            total_budget=str(total),
        )
        return template

    async def deactivate_template(self, template_id: UUID, family_id: UUID) -> None:
        """Soft delete a template. Generated budgets keep existing.

        Raises:
            NotFoundError: If the template does not exist or is already inactive
        """
        template = await self.get_template(template_id, family_id)
        template.is_active = False
        await self.db.flush()

        logger.info(
            "Budget template deactivated", template_id=str(template_id), family_id=str(family_id)
        )

    @staticmethod
    def _build_categories(
        categories: Sequence[CategoryAllocation],
    ) -> List[BudgetTemplateCategory]:
        return [
            BudgetTemplateCategory(
                category_id=allocation.category_id,
                position=position,
                monthly_limit=allocation.monthly_limit,
                enable_rollover=allocation.enable_rollover,
            )
            for position, allocation in enumerate(categories)
        ]
