"""Product service for the catalog collaborator of the category tree.

Products only matter to the category tree in two ways: a category that
products still reference cannot be deleted, and each category caches how
many products it holds.
"""

from typing import Optional, Sequence
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateSlugError, NotFoundError
from app.models.category import Category
from app.models.product import Product

logger = structlog.get_logger(__name__)


class ProductService:
    """Service for product lookups used by the category tree."""

    def __init__(self, db: AsyncSession):
        """Initialize product service.

        Args:
            db: Async database session
        """
        self.db = db
        self.logger = logger.bind(service="product_service")

    async def has_associated_products(self, category_ids: Sequence[UUID]) -> bool:
        """Return True if any product references one of the categories."""
        if not category_ids:
            return False

        result = await self.db.execute(
            select(Product.id).where(Product.category_id.in_(list(category_ids))).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def count_for_category(self, category_id: UUID) -> int:
        """Count products placed directly in a category."""
        result = await self.db.execute(
            select(func.count(Product.id)).where(Product.category_id == category_id)
        )
        return result.scalar() or 0

    async def list_products(
        self,
        category_id: Optional[UUID] = None,
        include_descendants: bool = False,
        include_inactive: bool = False,
    ) -> list[Product]:
        """List products, optionally restricted to a category or its subtree.

        Args:
            category_id: Category to filter by
            include_descendants: Also include products of every descendant
            include_inactive: Include deactivated products

        Returns:
            Products ordered by name
        """
        query = select(Product)

        if category_id is not None:
            if include_descendants:
                query = query.join(Category, Product.category_id == Category.id).where(
                    Category.path_ids_key.contains(str(category_id))
                )
            else:
                query = query.where(Product.category_id == category_id)

        if not include_inactive:
            query = query.where(Product.is_active.is_(True))

        result = await self.db.execute(query.order_by(Product.name))
        return list(result.scalars().all())

    async def create_product(
        self,
        name: str,
        slug: str,
        category_id: Optional[UUID] = None,
        is_active: bool = True,
    ) -> Product:
        """Create a product.

        The category's cached product stats are left to
        CategoryService.refresh_product_stats.

        Raises:
            NotFoundError: If category_id does not resolve
        """
        if category_id is not None:
            if await self.db.get(Category, category_id) is None:
                raise NotFoundError("Category", str(category_id))

        existing = await self.db.execute(select(Product.id).where(Product.slug == slug))
        if existing.scalar_one_or_none() is not None:
            raise DuplicateSlugError(slug, "by another product")

        product = Product(name=name, slug=slug, category_id=category_id, is_active=is_active)
        self.db.add(product)
        await self.db.commit()

        self.logger.info(
            "product_created",
            product_id=str(product.id),
            category_id=str(category_id) if category_id else None,
        )
        return product
