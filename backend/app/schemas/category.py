"""Category Pydantic schemas for request/response validation."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

SLUG_PATTERN = r"^[a-z0-9-]+$"


class CategoryCreateRequest(BaseModel):
    """Payload for creating a category."""

    name: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(..., min_length=1, max_length=100, pattern=SLUG_PATTERN)
    description: str = Field("", max_length=500)
    image_url: Optional[str] = Field(None, max_length=1000)
    parent_id: Optional[UUID] = None
    display_order: int = Field(0, ge=0)
    is_active: bool = True


class CategoryUpdateRequest(BaseModel):
    """Payload for updating cosmetic fields and the slug.

    Re-parenting goes through the move endpoint.
    """

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = Field(None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    description: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = Field(None, max_length=1000)
    display_order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class CategoryMoveRequest(BaseModel):
    """Payload for moving a category under a new parent (null for root)."""

    new_parent_id: Optional[UUID] = None
    display_order: Optional[int] = Field(None, ge=0)


class ReorderItem(BaseModel):
    """One (id, display_order) pair of a bulk reorder."""

    id: UUID
    display_order: int = Field(..., ge=0)


class CategoryReorderRequest(BaseModel):
    """Bulk sibling reorder payload."""

    updates: list[ReorderItem] = Field(..., min_length=1)


class CategoryResponse(BaseModel):
    """Category response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    description: str = ""
    image_url: Optional[str] = None
    parent_id: Optional[UUID] = None
    path: str
    path_ids: list[UUID]
    level: int
    display_order: int
    is_active: bool
    children_count: int = 0
    descendants_count: int = 0
    is_leaf: bool = True
    product_count: int = 0
    has_products: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CategoryTreeResponse(CategoryResponse):
    """Category response with nested children for tree structure."""

    children: list["CategoryTreeResponse"] = []


class CategoryAncestorsResponse(BaseModel):
    """A category together with its ancestors and breadcrumb."""

    category: CategoryResponse
    ancestors: list[CategoryResponse]
    breadcrumb: list[CategoryResponse]


class DeleteResult(BaseModel):
    """Outcome of a (possibly cascading) delete."""

    deleted_count: int
    permanent: bool


class ReorderResult(BaseModel):
    """Outcome of a bulk reorder."""

    updated_count: int


class RebuildResult(BaseModel):
    """Outcome of a hierarchy rebuild."""

    updated: int
    orphaned: list[UUID] = []
