"""API 엔드포인트 패키지 - export only."""

from .routes import download_router, get_orchestrator, get_rate_limiter, health_router

__all__ = ["download_router", "get_orchestrator", "get_rate_limiter", "health_router"]
