"""Health check schemas."""

from typing import Dict, Optional

from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """Database and cache status, plus the size of the category forest.

    ``status`` is "ok" only when every entry of ``services`` is "ok";
    a failing cache reports "degraded".
    """

    status: str
    environment: str
    database: str
    redis: Optional[str] = None
    category_count: Optional[int] = None
    services: Dict[str, str] = {}
