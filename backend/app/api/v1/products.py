"""Products API endpoints."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.dependencies import get_category_service, get_product_service, require_admin
from app.schemas import ApiResponse, ProductCreateRequest, ProductResponse
from app.services.cache_service import CacheService, get_cache, invalidate_categories_cache
from app.services.category_service import CategoryService
from app.services.product_service import ProductService

router = APIRouter()


@router.get("", response_model=ApiResponse)
async def list_products(
    category_id: Optional[UUID] = Query(None, description="Filter by category UUID"),
    include_descendants: bool = Query(False, description="Include products of subcategories"),
    include_inactive: bool = Query(False, description="Include deactivated products"),
    service: ProductService = Depends(get_product_service),
):
    """List products, optionally within a category or its whole subtree."""
    products = await service.list_products(
        category_id=category_id,
        include_descendants=include_descendants,
        include_inactive=include_inactive,
    )
    return ApiResponse(status="success", data=[ProductResponse.model_validate(p) for p in products])


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_admin)])
async def create_product(
    payload: ProductCreateRequest,
    service: ProductService = Depends(get_product_service),
    categories: CategoryService = Depends(get_category_service),
    cache: CacheService = Depends(get_cache),
):
    """Create a product; its category's product stats are refreshed."""
    product = await service.create_product(**payload.model_dump())
    if product.category_id is not None:
        await categories.refresh_product_stats(product.category_id)
        await invalidate_categories_cache(cache)
    return ApiResponse(status="success", data=ProductResponse.model_validate(product))
