"""Response envelopes shared by every endpoint."""

from typing import Any, Optional

from pydantic import BaseModel


class PaginationMeta(BaseModel):
    """Paging info attached to flat category listings."""

    page: int = 1
    limit: int = 100
    total: int = 0
    total_pages: int = 0


class ApiResponse(BaseModel):
    """Success envelope: ``{"status": "success", "data": ..., "meta": ...}``."""

    status: str = "success"
    data: Any = None
    meta: Optional[PaginationMeta] = None


class ErrorDetail(BaseModel):
    """Machine-readable error code plus a human message."""

    code: str
    message: str
    field: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error envelope rendered for every StorefrontException."""

    status: str = "error"
    error: ErrorDetail
