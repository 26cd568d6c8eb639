"""Services module for business logic and data operations.

CategoryService owns every write to the category tree; ProductService
covers the product lookups the tree depends on; CacheService fronts
Redis for cached tree reads.
"""

from app.services.cache_service import CacheService, get_cache_service
from app.services.category_service import CategoryService
from app.services.product_service import ProductService

__all__ = [
    "CacheService",
    "CategoryService",
    "ProductService",
    "get_cache_service",
]
