"""FastAPI 앱 팩토리"""
import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mediafetch.api import download_router, health_router
from mediafetch.api.routes.dependencies import get_credential_manager, get_identity_pool, get_media_cache
from mediafetch.core.config import settings
from mediafetch.core.logging import logger
from mediafetch.services.media_cache import MediaCache


async def run_janitor(cache: MediaCache, interval_s: float, max_age_s: float) -> None:
    """오래된 캐시 파일 주기적 삭제"""
    while True:
        try:
            cache.purge_expired(max_age_s)
        except OSError as e:
            logger.warning(f"[Janitor] Cleanup failed: {type(e).__name__}: {e}")
        await asyncio.sleep(interval_s)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 생명주기"""
    logger.info("Starting application...")
    cache = get_media_cache()
    cache.ensure_dirs()

    janitor = asyncio.create_task(
        run_janitor(cache, settings.janitor_interval_s, settings.media_max_age_hours * 3600)
    )
    credentials = None
    if settings.cookie_background_refresh:
        credentials = get_credential_manager()
        credentials.start_background_refresh()

    connectivity = None
    pool = get_identity_pool()
    if settings.proxy_check_on_startup and len(pool) > 0:
        from mediafetch.fetchers.http_client import get_shared_http_client
        connectivity = asyncio.create_task(pool.check_connectivity(get_shared_http_client()))
    logger.info("Application started")

    yield

    logger.info("Shutting down application...")
    for task in (janitor, connectivity):
        if task is None:
            continue
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    if credentials is not None:
        await credentials.stop()

    # 종료 훅 예외는 로그만 남김
    try:
        from mediafetch.fetchers.playwright.session_pool import shutdown_browser_session_pool
        await shutdown_browser_session_pool()
    except Exception as e:
        logger.warning(f"Browser shutdown failed: {type(e).__name__}: {e}")
    try:
        from mediafetch.fetchers.http_client import shutdown_shared_http_client
        await shutdown_shared_http_client()
    except Exception as e:
        logger.warning(f"HTTP client shutdown failed: {type(e).__name__}: {e}")


def create_app() -> FastAPI:
    """
    FastAPI 앱 생성 (Factory Pattern)

    Returns:
        FastAPI 앱 인스턴스
    """
    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 라우터 등록
    app.include_router(health_router)
    app.include_router(download_router)

    return app

# 앱 인스턴스 생성 (uvicorn이 로드할 수 있도록)
app = create_app()
