"""헬스 체크 엔드포인트"""
import os
import shutil
from datetime import datetime

from fastapi import APIRouter, Depends

from mediafetch import __version__
from mediafetch.core.config import settings
from mediafetch.core.logging import logger
from mediafetch.engine.orchestrator import AcquisitionOrchestrator
from mediafetch.schemas.download_schema import HealthResponse

from .dependencies import get_orchestrator

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(orchestrator: AcquisitionOrchestrator = Depends(get_orchestrator)):
    """
    헬스 체크 엔드포인트

    - 캐시 디렉토리 쓰기 가능 여부
    - 추출 바이너리 존재 여부
    - 프록시 풀 / 쿠키 상태
    """
    media_dir = str(orchestrator.cache.media_dir)
    writable = os.path.isdir(media_dir) and os.access(media_dir, os.W_OK)
    extractor_ok = shutil.which(settings.extractor_binary) is not None
    if not extractor_ok:
        logger.warning(f"Extractor binary not found on PATH: {settings.extractor_binary}")

    identities = orchestrator.identity_pool.stats() if orchestrator.identity_pool is not None else {}
    credentials = orchestrator.credentials.stats() if orchestrator.credentials is not None else None

    return HealthResponse(
        status="ok" if writable and extractor_ok else "degraded",
        timestamp=datetime.now(),
        version=__version__,
        media_dir=media_dir,
        media_dir_writable=writable,
        extractor_available=extractor_ok,
        identities=identities,
        credentials=credentials,
        inflight=orchestrator.inflight_count,
    )


@router.get("/")
async def root():
    """루트 엔드포인트"""
    return {
        "service": "mediafetch",
        "version": __version__,
        "docs": "/docs"
    }
