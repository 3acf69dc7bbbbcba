"""Egress Identity Pool - 프록시 로테이션 및 밴 관리

- 밴은 만료 시각(timestamp)으로만 표현하고 next() 호출 시 지연 만료 처리합니다.
- 아이덴티티는 풀에서 영구 제거되지 않습니다. (헬스 신호는 노이즈가 많음)
- 커서/밴/헬스 상태는 하나의 락으로만 변경합니다.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional

from mediafetch.core.clock import Clock, wall_clock
from mediafetch.core.config import settings
from mediafetch.core.logging import logger

DEFAULT_BAN_SECONDS = 30 * 60


class HealthState(str, Enum):
    """아이덴티티 상태"""

    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    BANNED = "banned"


@dataclass(frozen=True)
class Identity:
    """프록시(egress) 아이덴티티

    Attributes:
        host: 프록시 호스트
        port: 프록시 포트
        username: 인증 사용자명 (선택)
        password: 인증 비밀번호 (선택)
        scheme: http | https | socks5
    """

    host: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None
    scheme: str = "http"

    @property
    def key(self) -> str:
        """풀 내 식별 키 (스킴과 사용자명 포함, 비밀번호 제외)"""
        auth = f"{self.username}@" if self.username else ""
        return f"{self.scheme}://{auth}{self.host}:{self.port}"

    @property
    def proxy_url(self) -> str:
        if self.username:
            return f"{self.scheme}://{self.username}:{self.password or ''}@{self.host}:{self.port}"
        return f"{self.scheme}://{self.host}:{self.port}"

    @property
    def server_url(self) -> str:
        """인증 정보 없는 프록시 주소 (Playwright proxy.server 용)"""
        return f"{self.scheme}://{self.host}:{self.port}"

    @classmethod
    def parse(cls, raw: str) -> "Identity":
        """`[scheme://][user:pass@]host:port` 문자열 파싱

        Raises:
            ValueError: 형식이 잘못된 경우
        """
        text = (raw or "").strip()
        if not text:
            raise ValueError("empty proxy entry")

        scheme = "http"
        if "://" in text:
            scheme, text = text.split("://", 1)

        username: Optional[str] = None
        password: Optional[str] = None
        if "@" in text:
            auth, text = text.rsplit("@", 1)
            username, _, password = auth.partition(":")

        host, sep, port_text = text.rpartition(":")
        if not sep or not host:
            raise ValueError(f"proxy entry missing port: {raw!r}")
        try:
            port = int(port_text)
        except ValueError as e:
            raise ValueError(f"invalid proxy port: {raw!r}") from e
        if not 0 < port < 65536:
            raise ValueError(f"proxy port out of range: {raw!r}")

        return cls(host=host, port=port, username=username or None, password=password or None, scheme=scheme.lower())

    def __repr__(self) -> str:
        auth = "auth" if self.username else "noauth"
        return f"Identity({self.scheme}://{self.host}:{self.port}, {auth})"


class IdentityPool:
    """아이덴티티 로테이션 풀

    Usage:
        pool = IdentityPool([Identity.parse("1.2.3.4:8080")])
        identity = pool.next()
        ...
        pool.report_health(identity, ok=False)
        pool.ban(identity)  # 차단 감지 시
    """

    def __init__(
        self,
        identities: Iterable[Identity] = (),
        *,
        default_ban_seconds: float = DEFAULT_BAN_SECONDS,
        fail_threshold: int = 3,
        clock: Clock = wall_clock,
    ) -> None:
        self._identities: list[Identity] = []
        seen: set[str] = set()
        for identity in identities:
            if identity.key in seen:
                continue
            seen.add(identity.key)
            self._identities.append(identity)

        self.default_ban_seconds = default_ban_seconds
        self.fail_threshold = fail_threshold
        self._clock = clock

        self._lock = threading.Lock()
        self._cursor = 0
        self._ban_expiry: dict[str, float] = {}
        self._health: dict[str, HealthState] = {}
        self._fail_counts: dict[str, int] = {}
        self._check_results: dict[str, bool] = {}
        self._last_check_at: Optional[float] = None

    @classmethod
    def from_settings(cls, clock: Clock = wall_clock) -> "IdentityPool":
        """PROXY_LIST / PROXY_FILE 설정으로 풀 생성

        잘못된 항목은 경고 로그만 남기고 건너뜁니다.
        """
        raw_entries: list[str] = []
        raw_entries.extend(settings.proxy_list.replace("\n", ",").split(","))

        if settings.proxy_file:
            path = Path(settings.proxy_file)
            try:
                raw_entries.extend(path.read_text(encoding="utf-8").splitlines())
            except OSError as e:
                logger.warning(f"[IdentityPool] Failed to read proxy file: {type(e).__name__}: {e}")

        identities: list[Identity] = []
        for raw in raw_entries:
            raw = raw.strip()
            if not raw or raw.startswith("#"):
                continue
            try:
                identities.append(Identity.parse(raw))
            except ValueError as e:
                logger.warning(f"[IdentityPool] Skipping invalid proxy entry: {e}")

        logger.info(f"[IdentityPool] Initialized with {len(identities)} identities")
        return cls(
            identities,
            default_ban_seconds=settings.proxy_ban_seconds,
            fail_threshold=settings.proxy_fail_threshold,
            clock=clock,
        )

    def __len__(self) -> int:
        return len(self._identities)

    def next(self) -> Optional[Identity]:
        """다음 사용 가능한 아이덴티티 반환

        밴되지 않은 목록에서 커서 위치의 항목을 반환하고 커서를 전진시킵니다.
        모두 밴 상태라면 밴 목록을 초기화하고 한 번 더 시도합니다.

        Returns:
            Optional[Identity]: 풀이 비어있으면 None
        """
        with self._lock:
            if not self._identities:
                return None

            self._expire_bans_locked(self._clock())
            available = self._available_locked()

            if not available:
                # 정책 이벤트: 데드락 대신 전체 밴 해제
                logger.info(
                    f"[IdentityPool] All {len(self._identities)} identities banned, resetting ban list"
                )
                for key in self._ban_expiry:
                    self._health[key] = HealthState.UNKNOWN
                self._ban_expiry.clear()
                self._fail_counts.clear()
                available = self._available_locked()

            identity = available[self._cursor % len(available)]
            self._cursor = (self._cursor + 1) % len(available)
            return identity

    def ban(self, identity: Identity, duration_s: Optional[float] = None) -> None:
        """아이덴티티 밴 (이미 밴 상태면 만료 시각 갱신)

        Args:
            identity: 대상 아이덴티티
            duration_s: 밴 유지 시간 (기본 30분)
        """
        duration = self.default_ban_seconds if duration_s is None else duration_s
        with self._lock:
            self._ban_expiry[identity.key] = self._clock() + duration
            self._health[identity.key] = HealthState.BANNED
        logger.warning(f"[IdentityPool] Banned {identity!r} for {duration:.0f}s")

    def unban(self, identity: Identity) -> None:
        """밴 해제 (밴된 적 없으면 no-op)"""
        with self._lock:
            if self._ban_expiry.pop(identity.key, None) is None:
                return
            self._health[identity.key] = HealthState.UNKNOWN
            self._fail_counts.pop(identity.key, None)
        logger.info(f"[IdentityPool] Unbanned {identity!r}")

    def report_health(self, identity: Identity, ok: bool) -> None:
        """헬스 신호 기록

        성공 시 healthy로 표시하고 실패 카운트 초기화.
        연속 실패가 fail_threshold에 도달하면 밴합니다.
        """
        should_ban = False
        with self._lock:
            if ok:
                self._fail_counts.pop(identity.key, None)
                if identity.key not in self._ban_expiry:
                    self._health[identity.key] = HealthState.HEALTHY
                return

            count = self._fail_counts.get(identity.key, 0) + 1
            self._fail_counts[identity.key] = count
            if count >= self.fail_threshold and identity.key not in self._ban_expiry:
                should_ban = True
                self._fail_counts.pop(identity.key, None)

        if should_ban:
            logger.info(
                f"[IdentityPool] {identity!r} reached {self.fail_threshold} consecutive failures"
            )
            self.ban(identity)

    async def check_connectivity(
        self,
        http_client: Any,
        *,
        url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        concurrency: int = 5,
    ) -> dict:
        """프록시 연결 능동 점검

        각 아이덴티티를 경유해 url에 요청하고 결과를 report_health()로 반영합니다.
        밴 상태인 아이덴티티도 점검하되 결과만 기록합니다.

        Args:
            http_client: check_proxy(url, proxy_url=..., timeout_s=...) -> bool 을 제공하는 클라이언트
            url: 점검 URL (기본 PROXY_CHECK_URL)
            timeout_s: 아이덴티티당 제한 시간 (기본 PROXY_CHECK_TIMEOUT_S)
            concurrency: 동시 점검 수

        Returns:
            dict: working / failed / last_tested
        """
        url = url or settings.proxy_check_url
        timeout_s = timeout_s or settings.proxy_check_timeout_s
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def check(identity: Identity) -> None:
            async with semaphore:
                ok = await http_client.check_proxy(url, proxy_url=identity.proxy_url, timeout_s=timeout_s)
            with self._lock:
                self._check_results[identity.key] = ok
                self._last_check_at = self._clock()
            self.report_health(identity, ok=ok)

        identities = list(self._identities)
        logger.info(f"[IdentityPool] Probing {len(identities)} identities via {url}")
        await asyncio.gather(*(check(identity) for identity in identities))

        summary = self.connectivity_stats()
        logger.info(
            f"[IdentityPool] Connectivity check finished: {summary['working']} working, {summary['failed']} failed"
        )
        return summary

    def connectivity_stats(self) -> dict:
        with self._lock:
            return self._connectivity_summary_locked()

    def is_banned(self, identity: Identity) -> bool:
        with self._lock:
            expiry = self._ban_expiry.get(identity.key)
            return expiry is not None and expiry > self._clock()

    def health_of(self, identity: Identity) -> HealthState:
        with self._lock:
            self._expire_bans_locked(self._clock())
            return self._health.get(identity.key, HealthState.UNKNOWN)

    def stats(self) -> dict:
        """풀 현황

        Returns:
            dict: total / banned / available / healthy / cursor / connectivity
        """
        with self._lock:
            self._expire_bans_locked(self._clock())
            total = len(self._identities)
            banned = len(self._ban_expiry)
            healthy = sum(1 for state in self._health.values() if state == HealthState.HEALTHY)
            return {
                "total": total,
                "banned": banned,
                "available": total - banned,
                "healthy": healthy,
                "cursor": self._cursor,
                "connectivity": self._connectivity_summary_locked(),
            }

    def _connectivity_summary_locked(self) -> dict:
        working = sum(1 for ok in self._check_results.values() if ok)
        return {
            "working": working,
            "failed": len(self._check_results) - working,
            "last_tested": self._last_check_at,
        }

    def _available_locked(self) -> list[Identity]:
        return [i for i in self._identities if i.key not in self._ban_expiry]

    def _expire_bans_locked(self, now: float) -> None:
        expired = [key for key, expiry in self._ban_expiry.items() if expiry <= now]
        for key in expired:
            del self._ban_expiry[key]
            self._health[key] = HealthState.UNKNOWN
            logger.info(f"[IdentityPool] Ban expired for {key}")
