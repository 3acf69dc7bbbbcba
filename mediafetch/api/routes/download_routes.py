"""Download Routes - 수집 요청을 Engine Layer로 위임

HTTP Layer는 입력 검증, 호출자 승인, 결과 → 응답 변환만 담당합니다.
"""

import asyncio
import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from mediafetch.core.config import settings
from mediafetch.core.exceptions import ErrorKind, InvalidResourceIdException
from mediafetch.core.logging import logger
from mediafetch.core.security import SecurityValidator, log_request
from mediafetch.engine.orchestrator import AcquisitionOrchestrator
from mediafetch.engine.result import user_message_for
from mediafetch.schemas.download_schema import DownloadResponse, ErrorResponse
from mediafetch.services.rate_limiter import AdmissionRateLimiter

from .dependencies import get_orchestrator, get_rate_limiter

router = APIRouter(tags=["download"])


def _error(status_code: int, error: str, details: str, headers: Optional[dict] = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details).model_dump()
    return JSONResponse(status_code=status_code, content=body, headers=headers)


@router.get(
    "/download",
    response_model=DownloadResponse,
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def download(
    request: Request,
    id: Optional[str] = Query(None, description="리소스(영상) ID"),
    orchestrator: AcquisitionOrchestrator = Depends(get_orchestrator),
    limiter: AdmissionRateLimiter = Depends(get_rate_limiter),
):
    """미디어 수집 API

    Flow:
        1. ID 검증 (경로 조작 방지)
        2. 호출자 쿨다운 확인
        3. Engine에 위임 (Cache → Strategy chain)
        4. 결과를 HTTP Response로 변환
    """
    await log_request(request)

    if not id:
        return _error(400, "Missing video ID", "Query parameter 'id' is required")

    try:
        resource_id = SecurityValidator.validate_resource_id(id)
    except InvalidResourceIdException as e:
        return _error(400, "Invalid video ID", e.message)

    client_key = request.client.host if request.client else "unknown"
    decision = limiter.admit(client_key)
    if not decision.allowed:
        wait_s = max(1, math.ceil(decision.retry_after_seconds))
        logger.info(f"[API] Rate limited {client_key} ({wait_s}s remaining)")
        return _error(
            429,
            "Too many download requests",
            f"Please wait {wait_s} seconds before downloading another video",
            headers={"Retry-After": str(wait_s)},
        )

    logger.info(f"[API] Download request: {resource_id}")
    try:
        result = await asyncio.wait_for(
            orchestrator.acquire(resource_id),
            timeout=settings.api_acquire_timeout_s,
        )
    except asyncio.TimeoutError:
        logger.error(f"[API] Acquisition exceeded {settings.api_acquire_timeout_s:.0f}s: {resource_id}")
        error, details = user_message_for(ErrorKind.TIMEOUT)
        return _error(500, error, details)

    if result.is_success:
        return DownloadResponse(url=result.url or "", method=result.method or "unknown", size=result.size or 0)

    error, details = result.user_message
    return _error(500, error, details)
