"""커스텀 예외 정의 (Structured Exception Hierarchy)

수집 실패는 반드시 ErrorKind로 분류된 AcquisitionError로 표현합니다.
오케스트레이터는 kind만 보고 재시도/중단을 결정합니다.
"""
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """수집 실패 분류

    내부 제어 흐름용입니다. 사용자 메시지는 engine.result.user_message_for()에서 별도로 매핑합니다.
    """

    AGE_OR_CONSENT_GATE = "age_or_consent_gate"
    ACCESS_DENIED = "access_denied"
    EXTRACTION_FAILED = "extraction_failed"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    PROCESS_SPAWN_ERROR = "process_spawn_error"
    EMPTY_ARTIFACT = "empty_artifact"


# 기본 예외 클래스
class MediaFetchException(Exception):
    """기본 예외 클래스 - 모든 커스텀 예외의 부모"""
    def __init__(self, message: str, error_code: str = "UNKNOWN_ERROR", details: Optional[dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# 수집 실패 (분류된 예외)
class AcquisitionError(MediaFetchException):
    """분류된 수집 실패의 기본 클래스"""
    kind: ErrorKind = ErrorKind.EXTRACTION_FAILED

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, self.kind.name, details)


class AgeGateException(AcquisitionError):
    """연령/동의 확인 요구"""
    kind = ErrorKind.AGE_OR_CONSENT_GATE


class AccessDeniedException(AcquisitionError):
    """클라이언트 차단 (403/429, 봇 감지)"""
    kind = ErrorKind.ACCESS_DENIED


class ExtractionFailedException(AcquisitionError):
    """미디어 URL/스트림을 찾지 못함"""
    kind = ErrorKind.EXTRACTION_FAILED


class ResourceNotFoundException(AcquisitionError):
    """리소스가 존재하지 않음"""
    kind = ErrorKind.NOT_FOUND


class ResourceUnavailableException(AcquisitionError):
    """비공개/삭제/제한된 리소스"""
    kind = ErrorKind.UNAVAILABLE


class AcquisitionTimeoutException(AcquisitionError):
    """제한 시간 초과"""
    kind = ErrorKind.TIMEOUT

    def __init__(self, operation: str, timeout_s: float, details: Optional[dict[str, Any]] = None):
        message = f"Operation '{operation}' timed out after {timeout_s}s"
        super().__init__(message, details or {"operation": operation, "timeout_s": timeout_s})


class ProcessSpawnException(AcquisitionError):
    """추출 바이너리를 실행할 수 없음 (없음/권한/보안 정책)"""
    kind = ErrorKind.PROCESS_SPAWN_ERROR

    def __init__(self, binary: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Failed to start '{binary}': {reason}"
        super().__init__(message, details or {"binary": binary, "reason": reason})


class EmptyArtifactException(AcquisitionError):
    """결과 파일이 없거나 크기 검증 실패"""
    kind = ErrorKind.EMPTY_ARTIFACT

    def __init__(self, path: str, size: int, min_bytes: int):
        message = f"Artifact too small: {size} bytes (<= {min_bytes})"
        super().__init__(message, {"path": path, "size": size, "min_bytes": min_bytes})


# 인프라 예외
class BrowserException(MediaFetchException):
    """브라우저 실행 오류"""
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, "BROWSER_ERROR", details)


class CredentialRefreshException(MediaFetchException):
    """쿠키 재생성 실패"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Credential refresh failed: {reason}"
        super().__init__(message, "CREDENTIAL_REFRESH_FAILED", details or {"reason": reason})


# 유효성 검증 관련 예외
class ValidationException(MediaFetchException):
    """유효성 검증 예외"""
    def __init__(self, field: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Validation failed for '{field}': {reason}"
        super().__init__(message, "VALIDATION_ERROR",
                        details or {"field": field, "reason": reason})


class InvalidResourceIdException(ValidationException):
    """유효하지 않은 리소스 ID"""
    def __init__(self, resource_id: str, details: Optional[dict[str, Any]] = None):
        super().__init__("resource_id", f"invalid resource id (value: {resource_id!r})", details)
