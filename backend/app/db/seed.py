"""Seed a sample category tree for development.

Categories are created through CategoryService so every path field and
counter is consistent from the start.
Run with: python -m app.db.seed
"""

import asyncio
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import async_session_factory
from app.models import Category
from app.services.category_service import CategoryService

logger = structlog.get_logger(__name__)

# (name, slug, children)
SAMPLE_TREE = [
    ("Electronics", "electronics", [
        ("Computers", "computers", [
            ("Laptops", "laptops", []),
            ("Desktops", "desktops", []),
            ("Components", "components", [
                ("Graphics Cards", "graphics-cards", []),
                ("Processors", "processors", []),
            ]),
        ]),
        ("Smartphones", "smartphones", []),
        ("TV & Video", "tv-video", []),
    ]),
    ("Fashion", "fashion", [
        ("Men", "men", []),
        ("Women", "women", []),
    ]),
    ("Home & Living", "home-living", [
        ("Furniture", "furniture", []),
        ("Kitchen", "kitchen", []),
    ]),
    ("Sports", "sports", []),
]


async def _create_branch(
    service: CategoryService,
    nodes: list,
    parent_id: Optional[UUID] = None,
) -> int:
    created = 0
    for order, (name, slug, children) in enumerate(nodes, start=1):
        category = await service.create_category(
            name=name,
            slug=slug,
            parent_id=parent_id,
            display_order=order,
        )
        created += 1 + await _create_branch(service, children, category.id)
    return created


async def seed_categories(session: AsyncSession) -> int:
    """Create SAMPLE_TREE unless categories already exist.

    Returns:
        Number of categories created
    """
    result = await session.execute(select(Category.id).limit(1))
    if result.scalar_one_or_none() is not None:
        logger.info("categories_already_seeded")
        return 0

    created = await _create_branch(CategoryService(session), SAMPLE_TREE)
    logger.info("categories_seeded", created=created)
    return created


async def main():
    async with async_session_factory() as session:
        await seed_categories(session)


if __name__ == "__main__":
    asyncio.run(main())
