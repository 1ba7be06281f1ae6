"""
Category service — a flat list of named categories.

Names are not required to be unique; two categories may share a name and
are told apart by id.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Category
from app.schemas import CategoryCreate

logger = logging.getLogger(__name__)


def _category_to_dict(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "created_at": category.created_at.isoformat() if category.created_at else None,
    }


async def create_category(db: AsyncSession, data: CategoryCreate) -> dict:
    category = Category(name=data.name)
    db.add(category)
    await db.flush()
    logger.info("Created category id=%s name=%r", category.id, category.name)
    return _category_to_dict(category)


async def get_categories(db: AsyncSession) -> list[dict]:
    """Return every category in insertion order."""
    result = await db.execute(select(Category).order_by(Category.created_at.asc()))
    return [_category_to_dict(c) for c in result.scalars().all()]
