"""FastAPI dependency injection providers."""

import secrets
from typing import AsyncGenerator, Optional

import structlog
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.session import async_session_factory
from app.services.category_service import CategoryService
from app.services.product_service import ProductService

logger = structlog.get_logger(__name__)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for request-scoped usage.

    The session is automatically committed on success or rolled back on error.
    Always closed after the request completes.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_category_service(db: AsyncSession = Depends(get_db)) -> CategoryService:
    """Provide a CategoryService bound to the request session."""
    return CategoryService(db)


async def get_product_service(db: AsyncSession = Depends(get_db)) -> ProductService:
    """Provide a ProductService bound to the request session."""
    return ProductService(db)


async def require_admin(x_admin_key: Optional[str] = Header(None)) -> None:
    """Reject the request unless the X-Admin-Key header matches ADMIN_API_KEY.

    An unconfigured key disables every endpoint guarded by this dependency.
    """
    configured_key = settings.ADMIN_API_KEY

    if not configured_key:
        logger.warning("admin_api_key_not_configured")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Write endpoints are disabled (ADMIN_API_KEY not configured)",
        )

    # Constant-time comparison
    if not x_admin_key or not secrets.compare_digest(x_admin_key.encode(), configured_key.encode()):
        logger.warning("admin_api_key_rejected")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin key",
        )
