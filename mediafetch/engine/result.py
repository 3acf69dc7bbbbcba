"""Acquisition Result - Standardized Result Format

Provides a standardized format for acquisition results across all strategies.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from mediafetch.core.exceptions import ErrorKind


class AcquisitionStatus(str, Enum):
    """수집 상태"""

    CACHE_HIT = "cache_hit"  # 유효한 캐시 존재
    SUCCESS = "success"  # 전략 중 하나가 성공
    FAILED = "failed"  # 체인 소진 또는 중단


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class AcquisitionAttempt:
    """전략 1회 시도 기록 (로깅/텔레메트리용, 저장하지 않음)"""

    resource_id: str
    strategy: str
    started_at: float
    elapsed_ms: float
    outcome: AttemptOutcome
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "outcome": self.outcome.value,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "elapsed_ms": round(self.elapsed_ms, 1),
            "message": self.message,
        }


# kind → (error, details) 사용자 메시지
GENERIC_USER_MESSAGE = (
    "Failed to download video",
    "Please try again or select a different video",
)

USER_MESSAGES: dict[ErrorKind, tuple[str, str]] = {
    ErrorKind.ACCESS_DENIED: (
        "Video temporarily unavailable",
        "YouTube is currently blocking automated downloads. Please try again in a few minutes.",
    ),
    ErrorKind.AGE_OR_CONSENT_GATE: (
        "Video temporarily unavailable",
        "This video requires age or consent verification. Please try again later.",
    ),
    ErrorKind.UNAVAILABLE: (
        "Video not accessible",
        "This video may be private, deleted, or restricted.",
    ),
    ErrorKind.NOT_FOUND: (
        "Video not accessible",
        "This video may be private, deleted, or restricted.",
    ),
    ErrorKind.TIMEOUT: (
        "Download timeout",
        "The video took too long to download. Please try a shorter video.",
    ),
}


def user_message_for(kind: Optional[ErrorKind]) -> tuple[str, str]:
    """실패 kind → 사용자용 (error, details)

    목록에 없는 kind(EMPTY_ARTIFACT 포함)는 일반 메시지로 매핑합니다.
    """
    if kind is None:
        return GENERIC_USER_MESSAGE
    return USER_MESSAGES.get(kind, GENERIC_USER_MESSAGE)


@dataclass
class AcquisitionResult:
    """수집 결과 표준 포맷

    Attributes:
        status: 수집 상태
        resource_id: 리소스 ID
        url: 공개 URL (성공 시)
        method: 성공한 전략 이름 또는 "cache"
        size: 결과 파일 크기 (바이트)
        error_kind: 마지막으로 분류된 실패 kind
        error_message: 내부 오류 메시지 (로깅용)
        attempts: 시도 기록
        elapsed_ms: 전체 소요 시간
    """

    status: AcquisitionStatus
    resource_id: str
    url: Optional[str] = None
    method: Optional[str] = None
    size: Optional[int] = None

    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None

    attempts: list[AcquisitionAttempt] = field(default_factory=list)
    elapsed_ms: Optional[float] = None

    @property
    def is_success(self) -> bool:
        return self.status in (AcquisitionStatus.CACHE_HIT, AcquisitionStatus.SUCCESS)

    @property
    def user_message(self) -> tuple[str, str]:
        return user_message_for(self.error_kind)

    @classmethod
    def from_cache(cls, resource_id: str, url: str, size: int, elapsed_ms: float) -> "AcquisitionResult":
        """캐시 히트 결과 생성"""
        return cls(
            status=AcquisitionStatus.CACHE_HIT,
            resource_id=resource_id,
            url=url,
            method="cache",
            size=size,
            elapsed_ms=elapsed_ms,
        )

    @classmethod
    def success(
        cls,
        resource_id: str,
        url: str,
        method: str,
        size: int,
        attempts: list[AcquisitionAttempt],
        elapsed_ms: float,
    ) -> "AcquisitionResult":
        """전략 성공 결과 생성

        Args:
            resource_id: 리소스 ID
            url: 공개 URL
            method: 성공한 전략 이름
            size: 파일 크기
            attempts: 시도 기록
            elapsed_ms: 소요 시간 (밀리초)

        Returns:
            AcquisitionResult: 성공 결과
        """
        return cls(
            status=AcquisitionStatus.SUCCESS,
            resource_id=resource_id,
            url=url,
            method=method,
            size=size,
            attempts=attempts,
            elapsed_ms=elapsed_ms,
        )

    @classmethod
    def failure(
        cls,
        resource_id: str,
        error_kind: Optional[ErrorKind],
        error_message: Optional[str],
        attempts: list[AcquisitionAttempt],
        elapsed_ms: float,
    ) -> "AcquisitionResult":
        """실패 결과 생성 (마지막으로 분류된 kind를 유지)"""
        return cls(
            status=AcquisitionStatus.FAILED,
            resource_id=resource_id,
            error_kind=error_kind,
            error_message=error_message,
            attempts=attempts,
            elapsed_ms=elapsed_ms,
        )

    def to_payload(self) -> dict:
        """호출자 응답 본문 ({url, method, size} 또는 {error, details})"""
        if self.is_success:
            return {"url": self.url, "method": self.method, "size": self.size}
        error, details = self.user_message
        return {"error": error, "details": details}
