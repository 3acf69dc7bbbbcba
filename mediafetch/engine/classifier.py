"""Failure Classifier - 실패 신호를 ErrorKind로 분류

각 실행자는 자신이 관찰한 신호(도구 출력, HTTP 상태, 플레이어 상태)를
여기 함수로 분류해 AcquisitionError를 발생시킵니다. 오케스트레이터는 재분류하지 않습니다.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from mediafetch.core.exceptions import (
    AccessDeniedException,
    AcquisitionError,
    AcquisitionTimeoutException,
    AgeGateException,
    EmptyArtifactException,
    ErrorKind,
    ExtractionFailedException,
    ProcessSpawnException,
    ResourceNotFoundException,
    ResourceUnavailableException,
)
from mediafetch.core.logging import mask_credentials

# 순서 중요: "sign in to confirm your age" 는 봇 차단 문구보다 먼저 검사
AGE_GATE_MARKERS = (
    "confirm your age",
    "age-restricted",
    "age restricted",
    "inappropriate for some users",
    "age verification",
)
ACCESS_DENIED_MARKERS = (
    "not a bot",
    "sign in to confirm",
    "http error 403",
    "http error 429",
    "too many requests",
    "forbidden",
    "rate-limit",
    "rate limit",
)
NOT_FOUND_MARKERS = (
    "http error 404",
    "does not exist",
    "incomplete youtube id",
    "invalid video id",
)
UNAVAILABLE_MARKERS = (
    "video unavailable",
    "private video",
    "has been removed",
    "been terminated",
    "no longer available",
    "not available in your country",
    "this live event will begin",
)
TIMEOUT_MARKERS = (
    "timed out",
    "timeout",
)

_SIMPLE_EXCEPTIONS: dict[ErrorKind, type[AcquisitionError]] = {
    ErrorKind.AGE_OR_CONSENT_GATE: AgeGateException,
    ErrorKind.ACCESS_DENIED: AccessDeniedException,
    ErrorKind.EXTRACTION_FAILED: ExtractionFailedException,
    ErrorKind.NOT_FOUND: ResourceNotFoundException,
    ErrorKind.UNAVAILABLE: ResourceUnavailableException,
}


def _contains_any(text: str, markers: tuple[str, ...]) -> bool:
    return any(m in text for m in markers)


def classify_text(text: str) -> Optional[ErrorKind]:
    """자유 텍스트(에러 메시지) 분류, 매칭 없으면 None"""
    lowered = (text or "").lower()
    if not lowered:
        return None
    if _contains_any(lowered, AGE_GATE_MARKERS):
        return ErrorKind.AGE_OR_CONSENT_GATE
    if _contains_any(lowered, ACCESS_DENIED_MARKERS):
        return ErrorKind.ACCESS_DENIED
    if _contains_any(lowered, NOT_FOUND_MARKERS):
        return ErrorKind.NOT_FOUND
    if _contains_any(lowered, UNAVAILABLE_MARKERS):
        return ErrorKind.UNAVAILABLE
    if _contains_any(lowered, TIMEOUT_MARKERS):
        return ErrorKind.TIMEOUT
    return None


def classify_tool_output(exit_code: int, stderr: str, stdout: str = "") -> ErrorKind:
    """추출 도구 종료 결과 분류

    Args:
        exit_code: 종료 코드 (0이 아닌 경우에만 호출하는 것을 전제)
        stderr: 표준 에러
        stdout: 표준 출력 (일부 에러는 stdout으로 출력됨)

    Returns:
        ErrorKind: 매칭 없으면 EXTRACTION_FAILED
    """
    return classify_text(f"{stderr}\n{stdout}") or ErrorKind.EXTRACTION_FAILED


def classify_http_status(
    status: int,
    *,
    not_found_kind: ErrorKind = ErrorKind.NOT_FOUND,
) -> Optional[ErrorKind]:
    """HTTP 상태코드 분류

    Args:
        status: 상태코드 (0 = 응답 없음)
        not_found_kind: 404/410에 매핑할 kind.
            스트림 URL 만료 같은 경우 UNAVAILABLE로 지정합니다.

    Returns:
        Optional[ErrorKind]: 정상(1xx~3xx)이면 None
    """
    if 0 < status < 400:
        return None
    if status in (404, 410):
        return not_found_kind
    if status in (401, 403, 429):
        return ErrorKind.ACCESS_DENIED
    if status == 451:
        return ErrorKind.UNAVAILABLE
    return ErrorKind.EXTRACTION_FAILED


def playability_reason(playability: Mapping[str, Any]) -> str:
    parts: list[str] = []
    for key in ("reason", "status"):
        value = playability.get(key)
        if isinstance(value, str):
            parts.append(value)
    for message in playability.get("messages") or []:
        if isinstance(message, str):
            parts.append(message)

    error_screen = playability.get("errorScreen") or {}
    renderer = error_screen.get("playerErrorMessageRenderer") or {}
    subreason = renderer.get("subreason") or {}
    for run in subreason.get("runs") or []:
        if isinstance(run, Mapping) and isinstance(run.get("text"), str):
            parts.append(run["text"])
    if isinstance(subreason.get("simpleText"), str):
        parts.append(subreason["simpleText"])

    return " ".join(parts)


def classify_playability(playability: Optional[Mapping[str, Any]]) -> Optional[ErrorKind]:
    """플레이어 응답의 playabilityStatus 분류

    Returns:
        Optional[ErrorKind]: 재생 가능(OK) 또는 정보 없음이면 None
    """
    if not playability:
        return None

    status = str(playability.get("status") or "").upper()
    if status in ("", "OK"):
        return None

    reason = playability_reason(playability).lower()
    if status in ("AGE_CHECK_REQUIRED", "AGE_VERIFICATION_REQUIRED", "CONTENT_CHECK_REQUIRED"):
        return ErrorKind.AGE_OR_CONSENT_GATE
    if _contains_any(reason, AGE_GATE_MARKERS):
        return ErrorKind.AGE_OR_CONSENT_GATE
    if status == "LOGIN_REQUIRED" or _contains_any(reason, ACCESS_DENIED_MARKERS):
        return ErrorKind.ACCESS_DENIED
    if status in ("ERROR", "UNPLAYABLE", "LIVE_STREAM_OFFLINE"):
        return ErrorKind.UNAVAILABLE
    return None


def summarize_output(text: str, max_length: int = 300) -> str:
    """도구 출력에서 마지막 ERROR 줄(없으면 마지막 줄)만 추려 로깅용으로 반환"""
    lines = [line.strip() for line in (text or "").splitlines() if line.strip()]
    if not lines:
        return ""
    errors = [line for line in lines if line.upper().startswith("ERROR")]
    line = mask_credentials((errors or lines)[-1])
    return line if len(line) <= max_length else line[:max_length] + "..."


def exception_for(
    kind: ErrorKind,
    message: str,
    details: Optional[dict[str, Any]] = None,
) -> AcquisitionError:
    """ErrorKind → 예외 인스턴스"""
    details = dict(details or {})
    if kind == ErrorKind.TIMEOUT:
        return AcquisitionTimeoutException(
            str(details.get("operation", "extraction")),
            float(details.get("timeout_s", 0.0)),
            details,
        )
    if kind == ErrorKind.PROCESS_SPAWN_ERROR:
        return ProcessSpawnException(str(details.get("binary", "unknown")), message, details)
    if kind == ErrorKind.EMPTY_ARTIFACT:
        return EmptyArtifactException(
            str(details.get("path", "")),
            int(details.get("size", 0)),
            int(details.get("min_bytes", 0)),
        )
    return _SIMPLE_EXCEPTIONS[kind](message, details)
