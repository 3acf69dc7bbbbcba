"""기본 전략 체인 조립

순서: ytdlp-ios → ytdlp-android → ytdlp-web-cookies → browser-extract → direct-stream
"""

from __future__ import annotations

from typing import Optional

from mediafetch.core.config import settings
from mediafetch.engine.strategy import Strategy, StrategyChain, StrategyKind

from .browser_executor import BrowserExtractExecutor
from .direct_stream_executor import DirectStreamExecutor
from .http_client import SharedHttpClient, get_shared_http_client
from .playwright.extractor import BrowserExtractor
from .playwright.session_pool import get_browser_session_pool
from .process_runner import ProcessRunner
from .ytdlp_executor import ANDROID_PROFILE, IOS_PROFILE, WEB_COOKIES_PROFILE, YtDlpExecutor


def build_process_runner() -> ProcessRunner:
    return ProcessRunner(
        kill_grace_s=settings.extractor_kill_grace_s,
        output_limit_bytes=settings.extractor_output_limit_bytes,
    )


def build_default_chain(
    runner: Optional[ProcessRunner] = None,
    http_client: Optional[SharedHttpClient] = None,
    extractor: Optional[BrowserExtractor] = None,
) -> StrategyChain:
    """설정 기반 기본 체인 생성

    Args:
        runner: 프로세스 실행기 (없으면 설정으로 생성)
        http_client: 공유 HTTP 클라이언트
        extractor: 브라우저 추출기 (없으면 공유 세션 풀로 생성)
    """
    runner = runner or build_process_runner()
    http_client = http_client or get_shared_http_client()
    extractor = extractor or BrowserExtractor(
        get_browser_session_pool(),
        navigation_timeout_ms=settings.browser_navigation_timeout_ms,
        ready_timeout_ms=settings.browser_ready_timeout_ms,
    )

    return StrategyChain(
        [
            Strategy(
                name=IOS_PROFILE.name,
                kind=StrategyKind.TOOL,
                executor=YtDlpExecutor(runner, IOS_PROFILE),
                uses_identity=True,
            ),
            Strategy(
                name=ANDROID_PROFILE.name,
                kind=StrategyKind.TOOL,
                executor=YtDlpExecutor(runner, ANDROID_PROFILE),
                uses_identity=True,
            ),
            Strategy(
                name=WEB_COOKIES_PROFILE.name,
                kind=StrategyKind.TOOL,
                executor=YtDlpExecutor(runner, WEB_COOKIES_PROFILE),
                requires_fresh_credentials=True,
            ),
            Strategy(
                name=BrowserExtractExecutor.name,
                kind=StrategyKind.BROWSER,
                executor=BrowserExtractExecutor(extractor, http_client),
            ),
            Strategy(
                name=DirectStreamExecutor.name,
                kind=StrategyKind.DIRECT_STREAM,
                executor=DirectStreamExecutor(runner, http_client),
                uses_identity=True,
            ),
        ]
    )
