"""
입력 보안 검증

리소스 ID는 캐시 경로를 만드는 데 쓰이므로 경로 조작 문자를 허용하지 않습니다.
"""

import re
from typing import Optional

from fastapi import Request

from mediafetch.core.config import settings
from mediafetch.core.exceptions import InvalidResourceIdException
from mediafetch.core.logging import logger, sanitize_for_log


class SecurityValidator:
    """입력 보안 검증"""

    RESOURCE_ID_PATTERN = re.compile(settings.resource_id_pattern)

    @staticmethod
    def validate_resource_id(resource_id: Optional[str]) -> str:
        """리소스 ID 검증

        Args:
            resource_id: 요청된 ID

        Returns:
            검증된 ID (앞뒤 공백 제거)

        Raises:
            InvalidResourceIdException: 비어있거나 허용되지 않는 문자 포함
        """
        value = (resource_id or "").strip()
        if not value or not SecurityValidator.RESOURCE_ID_PATTERN.fullmatch(value):
            logger.warning(f"Rejected resource id: {sanitize_for_log(value, max_length=80)}")
            raise InvalidResourceIdException(sanitize_for_log(value, max_length=80))
        return value


async def log_request(request: Request) -> None:
    """요청 로깅 (민감 정보 제외)

    Args:
        request: FastAPI Request 객체
    """
    query_params = {
        key: sanitize_for_log(str(value), max_length=50)
        for key, value in request.query_params.items()
    }
    if query_params:
        logger.debug(f"{request.method} {request.url.path}?{query_params}")
    else:
        logger.debug(f"{request.method} {request.url.path}")
