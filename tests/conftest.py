"""전역 테스트 설정

역할:
- 테스트 환경 구성
- 공통 Dummy/Fake 주입 (시계, 실행자, 캐시)

금지:
- 실제 네트워크/브라우저/yt-dlp 호출
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

import pytest


# 프로젝트 루트를 경로에 추가
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from mediafetch.core.exceptions import AcquisitionError  # noqa: E402
from mediafetch.engine.strategy import AttemptContext, Strategy, StrategyChain, StrategyKind  # noqa: E402
from mediafetch.services.media_cache import MediaCache  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def test_env() -> None:
    """테스트 환경 변수 설정 (세션 전역)"""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["LOG_LEVEL"] = "INFO"


class FakeClock:
    """수동으로 진행시키는 시계"""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeExecutor:
    """전략 실행자 더미

    - size_bytes 가 주어지면 스테이징 경로에 해당 크기 파일을 기록
    - error 가 주어지면 (partial_bytes 만큼 부분 파일을 남긴 뒤) 예외 발생
    """

    def __init__(
        self,
        size_bytes: Optional[int] = None,
        error: Optional[Exception] = None,
        partial_bytes: int = 0,
    ) -> None:
        self.size_bytes = size_bytes
        self.error = error
        self.partial_bytes = partial_bytes
        self.calls = 0
        self.contexts: list[AttemptContext] = []

    async def acquire(self, context: AttemptContext) -> None:
        self.calls += 1
        self.contexts.append(context)
        context.staging_path.parent.mkdir(parents=True, exist_ok=True)
        if self.error is not None:
            if self.partial_bytes:
                context.staging_path.write_bytes(b"\0" * self.partial_bytes)
            raise self.error
        if self.size_bytes is not None:
            context.staging_path.write_bytes(b"\0" * self.size_bytes)


async def no_sleep(_seconds: float) -> None:
    return None


def make_chain(*entries: tuple[str, StrategyKind, object], **flags) -> StrategyChain:
    """(name, kind, executor) 튜플로 체인 생성

    flags: {name: {"requires_fresh_credentials": True, ...}}
    """
    strategies = []
    for name, kind, executor in entries:
        strategies.append(Strategy(name=name, kind=kind, executor=executor, **flags.get(name, {})))
    return StrategyChain(strategies)


def failing(error: AcquisitionError, partial_bytes: int = 0) -> FakeExecutor:
    return FakeExecutor(error=error, partial_bytes=partial_bytes)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def media_cache(tmp_path: Path) -> MediaCache:
    cache = MediaCache(tmp_path / "videos", min_bytes=1024)
    cache.ensure_dirs()
    return cache
