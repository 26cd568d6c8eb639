"""SQLAlchemy models for Storefront.

All models are imported here so metadata.create_all can discover them.
"""

from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from app.models.category import Category
from app.models.product import Product

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Category",
    "Product",
]
