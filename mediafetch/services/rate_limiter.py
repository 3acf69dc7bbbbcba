"""Admission Rate Limiter - 호출자별 쿨다운

마지막으로 승인된 요청 이후 cooldown_s 가 지나야 다음 요청을 승인합니다.
거절된 요청은 타임스탬프를 갱신하지 않습니다.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from mediafetch.core.clock import Clock, wall_clock
from mediafetch.core.logging import logger


@dataclass(frozen=True)
class AdmissionDecision:
    allowed: bool
    retry_after_seconds: float = 0.0


class AdmissionRateLimiter:
    """호출자 키(IP 등) 단위 단일 슬롯 쿨다운

    Usage:
        limiter = AdmissionRateLimiter(cooldown_s=5.0)
        decision = limiter.admit(client_ip)
        if not decision.allowed:
            ...  # 429, Retry-After: decision.retry_after_seconds
    """

    def __init__(self, cooldown_s: float = 5.0, max_tracked_keys: int = 10000, clock: Clock = wall_clock) -> None:
        self.cooldown_s = cooldown_s
        self.max_tracked_keys = max_tracked_keys
        self._clock = clock
        self._lock = threading.Lock()
        self._last_admitted: dict[str, float] = {}

    def admit(self, caller_key: str) -> AdmissionDecision:
        now = self._clock()
        with self._lock:
            last = self._last_admitted.get(caller_key)
            if last is not None:
                elapsed = now - last
                if elapsed < self.cooldown_s:
                    return AdmissionDecision(allowed=False, retry_after_seconds=self.cooldown_s - elapsed)

            self._last_admitted[caller_key] = now
            if len(self._last_admitted) > self.max_tracked_keys:
                self._prune_locked(now)
            return AdmissionDecision(allowed=True)

    def _prune_locked(self, now: float) -> None:
        stale = [k for k, ts in self._last_admitted.items() if now - ts >= self.cooldown_s]
        for key in stale:
            del self._last_admitted[key]
        logger.debug(f"[RateLimiter] Pruned {len(stale)} stale keys")

    @property
    def tracked_keys(self) -> int:
        return len(self._last_admitted)
