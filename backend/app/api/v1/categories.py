"""Categories API endpoints."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.dependencies import get_category_service, require_admin
from app.schemas import (
    ApiResponse,
    CategoryCreateRequest,
    CategoryMoveRequest,
    CategoryReorderRequest,
    CategoryResponse,
    CategoryUpdateRequest,
    PaginationMeta,
    ReorderResult,
)
from app.config import settings
from app.services.cache_service import CacheService, cache_key_for_tree, get_cache, invalidate_categories_cache
from app.services.category_service import CategoryService

router = APIRouter()


@router.get("", response_model=ApiResponse)
async def list_categories(
    include_inactive: bool = Query(False, description="Include deactivated categories"),
    parent_id: Optional[UUID] = Query(None, description="Only direct children of this category"),
    level: Optional[int] = Query(None, ge=0, description="Only categories at this depth"),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(100, ge=1, le=500, description="Items per page"),
    service: CategoryService = Depends(get_category_service),
):
    """List categories as a flat list ordered by level, then display order."""
    categories, total = await service.list_categories(
        include_inactive=include_inactive,
        parent_id=parent_id,
        level=level,
        page=page,
        limit=limit,
    )

    return ApiResponse(
        status="success",
        data=[CategoryResponse.model_validate(c) for c in categories],
        meta=PaginationMeta(
            page=page,
            limit=limit,
            total=total,
            total_pages=(total + limit - 1) // limit if total > 0 else 0,
        ),
    )


@router.get("/tree", response_model=ApiResponse)
async def get_category_tree(
    parent_id: Optional[UUID] = Query(None, description="Root of the returned subtree"),
    max_depth: Optional[int] = Query(None, ge=1, description="Number of levels to return"),
    include_inactive: bool = Query(False, description="Include deactivated categories"),
    service: CategoryService = Depends(get_category_service),
    cache: CacheService = Depends(get_cache),
):
    """Return the nested category tree.

    Cached for CATEGORY_CACHE_TTL seconds; any category change clears it.
    """
    cache_key = cache_key_for_tree(parent_id, max_depth, include_inactive)

    cached = await cache.get(cache_key)
    if cached:
        return ApiResponse.model_validate_json(cached)

    tree = await service.get_tree(
        parent_id=parent_id,
        max_depth=max_depth,
        include_inactive=include_inactive,
    )
    response = ApiResponse(status="success", data=tree)

    await cache.set(cache_key, response.model_dump_json(), ttl=settings.CATEGORY_CACHE_TTL)

    return response


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_admin)])
async def create_category(
    payload: CategoryCreateRequest,
    service: CategoryService = Depends(get_category_service),
    cache: CacheService = Depends(get_cache),
):
    """Create a root category or a child of ``parent_id``."""
    category = await service.create_category(**payload.model_dump())
    await invalidate_categories_cache(cache)
    return ApiResponse(status="success", data=CategoryResponse.model_validate(category))


@router.post("/reorder", response_model=ApiResponse, dependencies=[Depends(require_admin)])
async def reorder_categories(
    payload: CategoryReorderRequest,
    service: CategoryService = Depends(get_category_service),
    cache: CacheService = Depends(get_cache),
):
    """Set display_order on many categories at once."""
    updated = await service.reorder([(item.id, item.display_order) for item in payload.updates])
    await invalidate_categories_cache(cache)
    return ApiResponse(status="success", data=ReorderResult(updated_count=updated))


@router.post("/rebuild", response_model=ApiResponse, dependencies=[Depends(require_admin)])
async def rebuild_categories(
    root_id: Optional[UUID] = Query(None, description="Only repair this subtree"),
    service: CategoryService = Depends(get_category_service),
    cache: CacheService = Depends(get_cache),
):
    """Recompute path fields and counters from parent links.

    Recovery path after a failed tree update.
    """
    result = await service.rebuild_hierarchy(root_id)
    await invalidate_categories_cache(cache)
    return ApiResponse(status="success", data=result)


@router.get("/by-slug/{slug}", response_model=ApiResponse)
async def get_category_by_slug(
    slug: str,
    parent_id: Optional[UUID] = Query(None, description="Parent to look under, omitted for roots"),
    service: CategoryService = Depends(get_category_service),
):
    """Resolve a category by slug among the children of ``parent_id``."""
    category = await service.get_category_by_slug(slug, parent_id)
    return ApiResponse(status="success", data=CategoryResponse.model_validate(category))


@router.get("/{category_id}", response_model=ApiResponse)
async def get_category(
    category_id: UUID,
    service: CategoryService = Depends(get_category_service),
):
    """Get a single category."""
    category = await service.get_category(category_id)
    return ApiResponse(status="success", data=CategoryResponse.model_validate(category))


@router.get("/{category_id}/children", response_model=ApiResponse)
async def get_category_children(
    category_id: UUID,
    service: CategoryService = Depends(get_category_service),
):
    """Direct children ordered by display order."""
    children = await service.get_children(category_id)
    return ApiResponse(status="success", data=[CategoryResponse.model_validate(c) for c in children])


@router.get("/{category_id}/descendants", response_model=ApiResponse)
async def get_category_descendants(
    category_id: UUID,
    service: CategoryService = Depends(get_category_service),
):
    """Every category below this one, shallowest first."""
    descendants = await service.get_descendants(category_id)
    return ApiResponse(status="success", data=[CategoryResponse.model_validate(c) for c in descendants])


@router.get("/{category_id}/ancestors", response_model=ApiResponse)
async def get_category_ancestors(
    category_id: UUID,
    service: CategoryService = Depends(get_category_service),
):
    """The category with its ancestors and root-to-leaf breadcrumb."""
    result = await service.get_with_ancestors(category_id)
    return ApiResponse(status="success", data=result)


@router.patch("/{category_id}", response_model=ApiResponse, dependencies=[Depends(require_admin)])
async def update_category(
    category_id: UUID,
    payload: CategoryUpdateRequest,
    service: CategoryService = Depends(get_category_service),
    cache: CacheService = Depends(get_cache),
):
    """Update name, description, image, status, order or slug."""
    category = await service.update_category(category_id, **payload.model_dump(exclude_unset=True))
    await invalidate_categories_cache(cache)
    return ApiResponse(status="success", data=CategoryResponse.model_validate(category))


@router.post("/{category_id}/move", response_model=ApiResponse, dependencies=[Depends(require_admin)])
async def move_category(
    category_id: UUID,
    payload: CategoryMoveRequest,
    service: CategoryService = Depends(get_category_service),
    cache: CacheService = Depends(get_cache),
):
    """Move a category and its subtree under a new parent (null for root)."""
    category = await service.move_category(
        category_id,
        payload.new_parent_id,
        display_order=payload.display_order,
    )
    await invalidate_categories_cache(cache)
    return ApiResponse(status="success", data=CategoryResponse.model_validate(category))


@router.delete("/{category_id}", response_model=ApiResponse, dependencies=[Depends(require_admin)])
async def delete_category(
    category_id: UUID,
    permanent: bool = Query(False, description="Remove rows instead of deactivating"),
    cascade: bool = Query(False, description="Also delete every descendant"),
    service: CategoryService = Depends(get_category_service),
    cache: CacheService = Depends(get_cache),
):
    """Deactivate or remove a category, optionally with its subtree."""
    result = await service.delete_category(category_id, permanent=permanent, cascade=cascade)
    await invalidate_categories_cache(cache)
    return ApiResponse(status="success", data=result)
