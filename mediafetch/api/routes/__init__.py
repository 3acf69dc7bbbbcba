"""API routes package."""

from .dependencies import get_orchestrator, get_rate_limiter
from .download_routes import router as download_router
from .health_routes import router as health_router

__all__ = ["download_router", "get_orchestrator", "get_rate_limiter", "health_router"]
