"""Executor Base - 전략 실행자 공통 처리

- 실행자가 분류하지 못한 예외는 ExtractionFailedException으로 감쌉니다.
- 할당받은 아이덴티티에 결과를 보고합니다. (ACCESS_DENIED → 밴)
"""

from __future__ import annotations

import asyncio

from mediafetch.core.exceptions import AcquisitionError, ErrorKind, ExtractionFailedException
from mediafetch.core.logging import logger
from mediafetch.engine.strategy import AttemptContext, RetryPolicy

# 프록시 상태를 의심할 만한 실패
IDENTITY_FAILURE_KINDS = frozenset({ErrorKind.TIMEOUT, ErrorKind.EXTRACTION_FAILED})


class BaseExecutor:
    """전략 실행자 기본 클래스

    하위 클래스는 _acquire()만 구현합니다.

    구현 예시:
        class MyExecutor(BaseExecutor):
            name = "my-strategy"

            async def _acquire(self, context: AttemptContext) -> None:
                # context.staging_path 에 결과 파일 기록
                ...
    """

    name = "executor"

    async def acquire(self, context: AttemptContext) -> None:
        try:
            await self._acquire(context)
        except AcquisitionError as e:
            self._report_identity(context, e.kind)
            raise
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[{self.name}] Unexpected error: {type(e).__name__}: {e}", exc_info=True)
            self._report_identity(context, ErrorKind.EXTRACTION_FAILED)
            raise ExtractionFailedException(
                f"{type(e).__name__}: {e}",
                {"strategy": self.name, "resource_id": context.resource_id},
            ) from e
        else:
            if context.identity is not None and context.identity_pool is not None:
                context.identity_pool.report_health(context.identity, ok=True)

    async def _acquire(self, context: AttemptContext) -> None:
        raise NotImplementedError

    def _report_identity(self, context: AttemptContext, kind: ErrorKind) -> None:
        identity, pool = context.identity, context.identity_pool
        if identity is None or pool is None:
            return
        if RetryPolicy.bans_identity(kind):
            pool.ban(identity)
        elif kind in IDENTITY_FAILURE_KINDS:
            pool.report_health(identity, ok=False)
