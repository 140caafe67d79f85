from __future__ import annotations

from fastapi import APIRouter

from movie_catalog.core.config import settings
from movie_catalog.schemas.movie import HealthResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health_check() -> dict:
    """Health check endpoint.

    Reports availability plus the running environment and version. Used by
    load balancers and monitoring systems to determine service health.
    """

    return {
        "status": "available",
        "system_info": {
            "environment": settings.app_env,
            "version": settings.app.version,
        },
    }
