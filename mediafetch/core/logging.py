"""로깅 설정 (Security Enhanced)"""
import logging
import os
import re
import sys

from mediafetch.core.config import settings


# Production 환경에서는 DEBUG 로그 비활성화
IS_PRODUCTION = os.getenv("ENVIRONMENT", "development") == "production"


def setup_logging() -> logging.Logger:
    """로거 초기화 및 설정"""

    logger = logging.getLogger("mediafetch")

    # Production에서는 최소 INFO 레벨
    log_level = settings.log_level.upper()
    if IS_PRODUCTION and log_level == "DEBUG":
        log_level = "INFO"

    logger.setLevel(getattr(logging, log_level))

    # 콘솔 핸들러
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level))

    # 포맷터 (민감 정보 제외)
    if IS_PRODUCTION:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    console_handler.setFormatter(formatter)

    if not logger.handlers:
        logger.addHandler(console_handler)

    return logger


logger = setup_logging()


_PROXY_CREDENTIALS = re.compile(r"(?P<scheme>[a-z0-9+.-]+://)?[^\s/:@]+:[^\s/@]+@")


def mask_credentials(value: str) -> str:
    """URL에 포함된 user:pass@ 부분만 ***@ 로 치환"""
    return _PROXY_CREDENTIALS.sub(lambda m: f"{m.group('scheme') or ''}***@", value or "")


def sanitize_for_log(value: str, max_length: int = 100) -> str:
    """민감 정보 제거 후 로깅용 문자열 반환

    - 프록시 URL의 user:pass@ 부분은 ***@ 로 치환합니다.
    - password/token/cookie 등의 키워드가 포함되면 통째로 마스킹합니다.

    Args:
        value: 로깅할 문자열
        max_length: 최대 길이

    Returns:
        제거된 문자열
    """
    if not value:
        return "[empty]"

    result = mask_credentials(value)

    patterns_to_mask = [
        ('password', '***'),
        ('token', '***'),
        ('api_key', '***'),
        ('secret', '***'),
        ('cookie', '***'),
    ]

    for pattern, mask in patterns_to_mask:
        if pattern in result.lower():
            result = mask
            break

    # 길이 초과 시 절단
    if len(result) > max_length:
        result = result[:max_length] + "..."

    return result
