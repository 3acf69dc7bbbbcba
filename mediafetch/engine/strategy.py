"""Strategy Chain - 수집 전략 정의 및 재시도 정책

전략은 시작 시 한 번 정의되는 불변 값이고, 체인은 순서가 고정된 튜플입니다.
재시도/중단 판단은 실패 kind만 보고 RetryPolicy가 결정합니다.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Optional, Protocol, Sequence

from mediafetch.core.exceptions import ErrorKind

if TYPE_CHECKING:
    from mediafetch.identity import Identity, IdentityPool


class StrategyKind(str, Enum):
    """전략 종류

    TOOL/DIRECT_STREAM 은 추출 바이너리에 의존합니다.
    """

    TOOL = "tool"
    BROWSER = "browser"
    DIRECT_STREAM = "direct_stream"


@dataclass
class AttemptContext:
    """한 번의 전략 시도에 전달되는 입력

    Attributes:
        resource_id: 검증된 리소스 ID
        resource_url: 리소스 페이지 URL
        staging_path: 결과물을 써야 할 스테이징 경로
        identity: 이번 시도에 할당된 프록시 (없으면 직접 연결)
        identity_pool: 밴/헬스 보고 대상 풀
        cookies_path: 사용 가능한(신선한) 쿠키 파일 경로
    """

    resource_id: str
    resource_url: str
    staging_path: Path
    identity: Optional["Identity"] = None
    identity_pool: Optional["IdentityPool"] = None
    cookies_path: Optional[Path] = None


class StrategyExecutor(Protocol):
    """전략 실행자 인터페이스

    성공 시 context.staging_path 에 결과 파일을 남기고 반환합니다.
    실패는 분류된 AcquisitionError로 발생시킵니다.
    """

    async def acquire(self, context: AttemptContext) -> None:
        ...


@dataclass(frozen=True)
class Strategy:
    """수집 전략

    Attributes:
        name: 전략 이름 (결과의 method 값)
        kind: 전략 종류
        executor: 실행자
        requires_fresh_credentials: 신선한 쿠키가 없으면 건너뜀
        uses_identity: 시도마다 풀에서 프록시를 할당받음
        timeout_s: 시도 전체 제한 시간 (None이면 실행자 자체 제한만 적용)
        position: 체인 내 순서 (StrategyChain이 부여)
    """

    name: str
    kind: StrategyKind
    executor: StrategyExecutor = field(compare=False, repr=False)
    requires_fresh_credentials: bool = False
    uses_identity: bool = False
    timeout_s: Optional[float] = None
    position: int = 0

    @property
    def uses_tool(self) -> bool:
        return self.kind in (StrategyKind.TOOL, StrategyKind.DIRECT_STREAM)


class StrategyChain:
    """순서가 고정된 불변 전략 목록"""

    def __init__(self, strategies: Sequence[Strategy]) -> None:
        names = [s.name for s in strategies]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate strategy names: {names}")
        self._strategies: tuple[Strategy, ...] = tuple(
            replace(s, position=i) for i, s in enumerate(strategies)
        )

    def __iter__(self) -> Iterator[Strategy]:
        return iter(self._strategies)

    def __len__(self) -> int:
        return len(self._strategies)

    def __getitem__(self, index: int) -> Strategy:
        return self._strategies[index]

    @property
    def names(self) -> list[str]:
        return [s.name for s in self._strategies]


@dataclass(frozen=True)
class RetryPolicy:
    """실패 kind 기반 재시도 정책

    - NOT_FOUND / UNAVAILABLE: 즉시 중단
    - TIMEOUT: 재시도하되 max_timeout_attempts 회에서 중단
    - PROCESS_SPAWN_ERROR: 남은 도구 기반 전략 전부 건너뜀
    - 나머지: 다음 전략으로 진행
    """

    max_timeout_attempts: int = 2

    TERMINAL_KINDS = frozenset({ErrorKind.NOT_FOUND, ErrorKind.UNAVAILABLE})

    def is_terminal(self, kind: ErrorKind, timeouts_seen: int = 0) -> bool:
        """체인을 여기서 멈춰야 하는지

        Args:
            kind: 방금 실패한 kind
            timeouts_seen: 지금까지(이번 포함) 발생한 타임아웃 수
        """
        if kind in self.TERMINAL_KINDS:
            return True
        if kind == ErrorKind.TIMEOUT and timeouts_seen >= self.max_timeout_attempts:
            return True
        return False

    @staticmethod
    def disables_tools(kind: ErrorKind) -> bool:
        return kind == ErrorKind.PROCESS_SPAWN_ERROR

    @staticmethod
    def bans_identity(kind: ErrorKind) -> bool:
        return kind == ErrorKind.ACCESS_DENIED
