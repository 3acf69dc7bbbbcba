"""Acquisition Orchestrator - Main Engine Entry Point

Coordinates the acquisition pipeline:
1. Cache lookup
2. Strategy chain, strictly in order (tool → browser → direct stream)
3. Staging validation and atomic promotion
4. Result normalization

Concurrent acquisitions of the same resource share one in-flight task.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from mediafetch.core.clock import Clock, wall_clock
from mediafetch.core.exceptions import (
    AcquisitionError,
    AcquisitionTimeoutException,
    ErrorKind,
)
from mediafetch.core.logging import logger
from mediafetch.core.security import SecurityValidator
from mediafetch.credentials.manager import CredentialManager
from mediafetch.identity import IdentityPool
from mediafetch.services.media_cache import MediaCache

from .result import AcquisitionAttempt, AcquisitionResult, AttemptOutcome
from .strategy import AttemptContext, RetryPolicy, Strategy, StrategyChain

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class _InflightEntry:
    task: asyncio.Task
    waiters: int = 0


class AcquisitionOrchestrator:
    """수집 오케스트레이터

    Cache → Strategy 1 → ... → Strategy N 순서로 실행하며,
    실패 kind와 RetryPolicy로 진행/중단을 결정합니다.

    Usage:
        orchestrator = AcquisitionOrchestrator(chain, cache, identity_pool=pool, credentials=manager)
        result = await orchestrator.acquire("dQw4w9WgXcQ")
        if result.is_success:
            ...
    """

    def __init__(
        self,
        chain: StrategyChain,
        cache: MediaCache,
        *,
        identity_pool: Optional[IdentityPool] = None,
        credentials: Optional[CredentialManager] = None,
        policy: Optional[RetryPolicy] = None,
        resource_url_template: str = "https://www.youtube.com/watch?v={resource_id}",
        inter_strategy_delay_s: float = 1.0,
        coalesce_inflight: bool = True,
        clock: Clock = wall_clock,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Args:
            chain: 전략 체인
            cache: 결과 파일 캐시
            identity_pool: 프록시 풀 (uses_identity 전략에 할당)
            credentials: 쿠키 관리자 (requires_fresh_credentials 전략의 전제)
            policy: 재시도 정책
            resource_url_template: 리소스 ID → 페이지 URL
            inter_strategy_delay_s: 연속 시도 사이 고정 대기
            coalesce_inflight: 같은 리소스 동시 요청 합치기
            clock: 시도 시작 시각 기록용 시계
            sleep: 대기 함수 (테스트 주입용)
        """
        if chain is None or len(chain) == 0:
            raise ValueError("chain must contain at least one strategy")
        if cache is None:
            raise ValueError("cache must not be None")

        self.chain = chain
        self.cache = cache
        self.identity_pool = identity_pool
        self.credentials = credentials
        self.policy = policy or RetryPolicy()
        self.resource_url_template = resource_url_template
        self.inter_strategy_delay_s = inter_strategy_delay_s
        self.coalesce_inflight = coalesce_inflight
        self._clock = clock
        self._sleep = sleep
        self._inflight: dict[str, _InflightEntry] = {}

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    async def acquire(self, resource_id: str) -> AcquisitionResult:
        """리소스 수집

        Args:
            resource_id: 리소스 ID

        Returns:
            AcquisitionResult: 성공/캐시 히트/실패 결과

        Raises:
            InvalidResourceIdException: ID 형식 오류
        """
        resource_id = SecurityValidator.validate_resource_id(resource_id)

        if not self.coalesce_inflight:
            return await self._acquire(resource_id)

        entry = self._inflight.get(resource_id)
        if entry is not None and entry.task.done():
            # 끝난 작업에는 합류하지 않음
            self._forget(resource_id, entry)
            entry = None
        if entry is None:
            entry = _InflightEntry(task=asyncio.create_task(self._acquire(resource_id)))
            self._inflight[resource_id] = entry
            entry.task.add_done_callback(lambda _t, rid=resource_id, e=entry: self._forget(rid, e))
        else:
            logger.info(f"[Orchestrator] Joining in-flight acquisition: {resource_id}")

        entry.waiters += 1
        try:
            return await asyncio.shield(entry.task)
        finally:
            entry.waiters -= 1
            if entry.waiters == 0 and not entry.task.done():
                # 마지막 대기자가 취소된 경우에만 공유 작업 취소
                logger.info(f"[Orchestrator] All callers left, cancelling acquisition: {resource_id}")
                self._forget(resource_id, entry)
                entry.task.cancel()

    def _forget(self, resource_id: str, entry: _InflightEntry) -> None:
        if self._inflight.get(resource_id) is entry:
            del self._inflight[resource_id]

    async def _acquire(self, resource_id: str) -> AcquisitionResult:
        started = time.monotonic()

        cached = self.cache.lookup(resource_id)
        if cached is not None:
            logger.info(f"[Orchestrator] Cache hit: {resource_id} ({cached.size} bytes)")
            return AcquisitionResult.from_cache(
                resource_id,
                self.cache.public_url(resource_id),
                cached.size,
                elapsed_ms=(time.monotonic() - started) * 1000,
            )

        resource_url = self.resource_url_template.format(resource_id=resource_id)
        # 실행마다 별도 스테이징 파일
        run_token = uuid.uuid4().hex[:8]
        attempts: list[AcquisitionAttempt] = []
        last_kind: Optional[ErrorKind] = None
        last_message: Optional[str] = None
        timeouts_seen = 0
        tools_disabled = False
        attempted = False

        logger.info(f"[Orchestrator] Acquisition started: {resource_id} (chain={self.chain.names})")

        for strategy in self.chain:
            if tools_disabled and strategy.uses_tool:
                attempts.append(self._skipped(resource_id, strategy, "extraction tool unavailable"))
                continue

            cookies_path = None
            if strategy.requires_fresh_credentials:
                if self.credentials is None or not await self.credentials.ensure_fresh():
                    logger.info(f"[Orchestrator] Skipping {strategy.name}: fresh credentials unavailable")
                    attempts.append(self._skipped(resource_id, strategy, "fresh credentials unavailable"))
                    continue
                cookies_path = self.credentials.path
            elif self.credentials is not None and self.credentials.is_fresh():
                cookies_path = self.credentials.path

            if attempted and self.inter_strategy_delay_s > 0:
                await self._sleep(self.inter_strategy_delay_s)
            attempted = True

            identity = None
            if strategy.uses_identity and self.identity_pool is not None:
                identity = self.identity_pool.next()

            staging = self.cache.staging_path(resource_id, strategy.name, run_token)
            self.cache.discard_staging(resource_id, strategy.name, run_token)
            context = AttemptContext(
                resource_id=resource_id,
                resource_url=resource_url,
                staging_path=staging,
                identity=identity,
                identity_pool=self.identity_pool,
                cookies_path=cookies_path,
            )

            attempt_started_at = self._clock()
            t0 = time.monotonic()
            logger.info(
                f"[Orchestrator] Trying {strategy.name} ({strategy.position + 1}/{len(self.chain)}) "
                f"for {resource_id}"
            )

            try:
                await self._run_strategy(strategy, context)
                artifact = self.cache.promote(staging, resource_id)
            except asyncio.CancelledError:
                self.cache.discard_staging(resource_id, strategy.name, run_token)
                raise
            except AcquisitionError as e:
                kind, message = e.kind, e.message
            except Exception as e:
                # 실행자가 분류하지 못한 예외
                logger.error(
                    f"[Orchestrator] Unclassified failure in {strategy.name}: {type(e).__name__}: {e}",
                    exc_info=True,
                )
                kind, message = ErrorKind.EXTRACTION_FAILED, f"{type(e).__name__}: {e}"
            else:
                elapsed_ms = (time.monotonic() - t0) * 1000
                attempts.append(
                    AcquisitionAttempt(
                        resource_id=resource_id,
                        strategy=strategy.name,
                        started_at=attempt_started_at,
                        elapsed_ms=elapsed_ms,
                        outcome=AttemptOutcome.SUCCESS,
                    )
                )
                logger.info(
                    f"[Orchestrator] Acquired {resource_id} via {strategy.name} "
                    f"({artifact.size / 1024 / 1024:.2f}MB, {elapsed_ms:.0f}ms)"
                )
                return AcquisitionResult.success(
                    resource_id,
                    self.cache.public_url(resource_id),
                    strategy.name,
                    artifact.size,
                    attempts,
                    elapsed_ms=(time.monotonic() - started) * 1000,
                )

            self.cache.discard_staging(resource_id, strategy.name, run_token)
            attempts.append(
                AcquisitionAttempt(
                    resource_id=resource_id,
                    strategy=strategy.name,
                    started_at=attempt_started_at,
                    elapsed_ms=(time.monotonic() - t0) * 1000,
                    outcome=AttemptOutcome.FAILED,
                    error_kind=kind,
                    message=message,
                )
            )
            last_kind, last_message = kind, message
            logger.warning(f"[Orchestrator] {strategy.name} failed for {resource_id}: {kind.value} ({message})")

            if kind == ErrorKind.TIMEOUT:
                timeouts_seen += 1
            if self.policy.disables_tools(kind):
                tools_disabled = True
                logger.error("[Orchestrator] Extraction tool cannot be started, skipping tool strategies")
            if self.policy.is_terminal(kind, timeouts_seen):
                logger.info(f"[Orchestrator] Stopping chain for {resource_id}: {kind.value} is terminal")
                break

        logger.warning(
            f"[Orchestrator] All strategies failed for {resource_id}: "
            f"last={last_kind.value if last_kind else 'none'}"
        )
        return AcquisitionResult.failure(
            resource_id,
            last_kind,
            last_message,
            attempts,
            elapsed_ms=(time.monotonic() - started) * 1000,
        )

    async def _run_strategy(self, strategy: Strategy, context: AttemptContext) -> None:
        if strategy.timeout_s is None:
            await strategy.executor.acquire(context)
            return
        try:
            await asyncio.wait_for(strategy.executor.acquire(context), timeout=strategy.timeout_s)
        except asyncio.TimeoutError as e:
            raise AcquisitionTimeoutException(strategy.name, strategy.timeout_s) from e

    def _skipped(self, resource_id: str, strategy: Strategy, reason: str) -> AcquisitionAttempt:
        return AcquisitionAttempt(
            resource_id=resource_id,
            strategy=strategy.name,
            started_at=self._clock(),
            elapsed_ms=0.0,
            outcome=AttemptOutcome.SKIPPED,
            message=reason,
        )
