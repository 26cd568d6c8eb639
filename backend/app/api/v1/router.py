"""API v1 router: health, category tree and product endpoints."""

from fastapi import APIRouter

from app.api.v1 import categories, health, products

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(categories.router, prefix="/categories", tags=["categories"])
api_v1_router.include_router(products.router, prefix="/products", tags=["products"])
