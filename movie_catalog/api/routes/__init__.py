from __future__ import annotations

from movie_catalog.api.routes.health import router as health_router
from movie_catalog.api.routes.movies import router as movies_router

__all__ = ["health_router", "movies_router"]
