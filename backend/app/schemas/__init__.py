"""Pydantic schemas for Storefront API.

All request/response models are defined here for easy import.
"""

from app.schemas.common import ApiResponse, ErrorDetail, ErrorResponse, PaginationMeta
from app.schemas.category import (
    CategoryAncestorsResponse,
    CategoryCreateRequest,
    CategoryMoveRequest,
    CategoryReorderRequest,
    CategoryResponse,
    CategoryTreeResponse,
    CategoryUpdateRequest,
    DeleteResult,
    RebuildResult,
    ReorderItem,
    ReorderResult,
)
from app.schemas.product import ProductCreateRequest, ProductResponse
from app.schemas.health import HealthCheckResponse

__all__ = [
    # Common
    "ApiResponse",
    "ErrorDetail",
    "ErrorResponse",
    "PaginationMeta",
    # Category
    "CategoryAncestorsResponse",
    "CategoryCreateRequest",
    "CategoryMoveRequest",
    "CategoryReorderRequest",
    "CategoryResponse",
    "CategoryTreeResponse",
    "CategoryUpdateRequest",
    "DeleteResult",
    "RebuildResult",
    "ReorderItem",
    "ReorderResult",
    # Product
    "ProductCreateRequest",
    "ProductResponse",
    # Health
    "HealthCheckResponse",
]
