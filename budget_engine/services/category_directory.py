"""Read-only category lookups used for validation and response enrichment."""

from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from budget_engine.models.category import Category


class CategoryDirectory:
    """Lookups over the category taxonomy."""

    def __init__(self, db: AsyncSession):
        """Initialize category directory.

        Args:
            db: Database session
        """
        self.db = db

    async def exists(self, category_id: UUID) -> bool:
        """Return True if the category exists."""
        return await self.db.get(Category, category_id) is not None

    async def get(self, category_id: UUID) -> Optional[Dict[str, object]]:
        """Return ``{id, name, color, icon}`` for a category, or None."""
        category = await self.db.get(Category, category_id)
        return self._summary(category) if category else None

    async def get_many(self, category_ids: Iterable[UUID]) -> Dict[UUID, Dict[str, object]]:
        """Return summaries keyed by id for every existing category in ``category_ids``."""
        ids = list(set(category_ids))
        if not ids:
            return {}
        result = await self.db.execute(select(Category).where(Category.id.in_(ids)))
        return {category.id: self._summary(category) for category in result.scalars().all()}

    async def missing(self, category_ids: Iterable[UUID]) -> List[UUID]:
        """Return the ids in ``category_ids`` that do not exist."""
        ids = list(category_ids)
        found = await self.get_many(ids)
        return [category_id for category_id in ids if category_id not in found]

    @staticmethod
    def _summary(category: Category) -> Dict[str, object]:
        return {
            "id": category.id,
            "name": category.name,
            "color": category.color,
            "icon": category.icon,
        }
