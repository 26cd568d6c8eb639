"""Category model for the hierarchical product catalog."""

import uuid
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

PATH_IDS_SEPARATOR = "/"


class Category(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Product category stored as a materialized path.

    Hierarchy is kept in redundant fields so that a whole subtree can be
    found with one query:

    - ``path``: slash-joined slugs from the root, e.g. ``/electronics/laptops``
    - ``path_ids_key``: slash-joined ids from the root down to this category
    - ``level``: depth, 0 for roots

    Only CategoryService writes these fields.
    """

    __tablename__ = "categories"

    # Basic info
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, index=True, comment="Unique among siblings")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, comment="Sibling sort key")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Hierarchy
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("categories.id"),
        nullable=True,
        index=True,
        comment="Parent category ID, NULL for roots",
    )
    path: Mapped[str] = mapped_column(String(2000), nullable=False, default="")
    path_ids_key: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="Ancestor ids from the root, self last",
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Cached aggregates
    children_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    descendants_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_leaf: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    product_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    has_products: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_categories_parent_slug", "parent_id", "slug"),
        Index("ix_categories_parent_display_order", "parent_id", "display_order"),
    )

    @property
    def path_ids(self) -> list[uuid.UUID]:
        """Ordered ancestor ids from the root, this category last."""
        if not self.path_ids_key:
            return []
        return [uuid.UUID(part) for part in self.path_ids_key.split(PATH_IDS_SEPARATOR)]

    @path_ids.setter
    def path_ids(self, value: list[uuid.UUID]) -> None:
        self.path_ids_key = PATH_IDS_SEPARATOR.join(str(item) for item in value)

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, path='{self.path}')>"
