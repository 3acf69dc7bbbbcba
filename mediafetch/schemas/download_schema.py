"""Pydantic 스키마 정의"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class DownloadResponse(BaseModel):
    """수집 성공 응답"""
    url: str = Field(..., description="캐시된 미디어 공개 URL")
    method: str = Field(..., description="성공한 전략 이름 (캐시 히트 시 'cache')")
    size: int = Field(..., ge=0, description="파일 크기 (바이트)")


class ErrorResponse(BaseModel):
    """오류 응답 (사용자용 메시지)"""
    error: str = Field(..., description="오류 요약")
    details: str = Field(..., description="사용자 안내 문구")


class HealthResponse(BaseModel):
    """헬스 체크 응답"""
    status: str = Field(..., description="ok | degraded")
    timestamp: datetime
    version: str
    media_dir: str
    media_dir_writable: bool
    extractor_available: bool
    identities: dict[str, Any] = Field(default_factory=dict)
    credentials: Optional[dict[str, Any]] = None
    inflight: int = 0
