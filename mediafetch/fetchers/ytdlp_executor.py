"""yt-dlp Executor - 추출 도구 기반 전략

플레이어 클라이언트 프로필(ios/android/web)만 다른 동일한 실행자입니다.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from mediafetch.core.config import settings
from mediafetch.core.logging import logger
from mediafetch.engine.classifier import classify_tool_output, exception_for, summarize_output
from mediafetch.engine.strategy import AttemptContext

from .executor import BaseExecutor
from .process_runner import ProcessRunner


@dataclass(frozen=True)
class ToolProfile:
    """yt-dlp 실행 프로필

    Attributes:
        name: 전략 이름
        player_client: --extractor-args youtube:player_client=<값>
        use_cookies: 쿠키 파일이 주어지면 전달할지 여부
    """

    name: str
    player_client: str
    use_cookies: bool = True


IOS_PROFILE = ToolProfile(name="ytdlp-ios", player_client="ios,web")
# android 클라이언트는 쿠키를 지원하지 않음
ANDROID_PROFILE = ToolProfile(name="ytdlp-android", player_client="android", use_cookies=False)
WEB_COOKIES_PROFILE = ToolProfile(name="ytdlp-web-cookies", player_client="web")


def common_tool_args(
    *,
    user_agent: str,
    referer: str,
    socket_timeout_s: int,
    retries: int,
    player_client: str,
    sleep_interval_s: int = 0,
    max_sleep_interval_s: int = 0,
) -> list[str]:
    args = [
        "--no-playlist",
        "--no-warnings",
        "--socket-timeout", str(socket_timeout_s),
        "--retries", str(retries),
        "--fragment-retries", str(retries),
        "--user-agent", user_agent,
        "--referer", referer,
        "--extractor-args", f"youtube:player_client={player_client}",
    ]
    # 다운로드 사이 무작위 대기
    if sleep_interval_s > 0:
        args += ["--sleep-interval", str(sleep_interval_s)]
        if max_sleep_interval_s > sleep_interval_s:
            args += ["--max-sleep-interval", str(max_sleep_interval_s)]
    return args


class YtDlpExecutor(BaseExecutor):
    """yt-dlp 다운로드 실행자

    Usage:
        executor = YtDlpExecutor(ProcessRunner(), IOS_PROFILE)
        await executor.acquire(context)
    """

    def __init__(
        self,
        runner: ProcessRunner,
        profile: ToolProfile,
        *,
        binary: Optional[str] = None,
        timeout_s: Optional[float] = None,
        fmt: Optional[str] = None,
        max_filesize: Optional[str] = None,
    ) -> None:
        self.runner = runner
        self.profile = profile
        self.name = profile.name
        self.binary = binary or settings.extractor_binary
        self.timeout_s = timeout_s or settings.extractor_timeout_s
        self.fmt = fmt or settings.extractor_format
        self.max_filesize = max_filesize or settings.extractor_max_filesize

    def build_args(self, context: AttemptContext) -> list[str]:
        args = [
            self.binary,
            "--format", self.fmt,
            "--merge-output-format", "mp4",
            "--max-filesize", self.max_filesize,
            "-o", str(context.staging_path),
        ]
        args += common_tool_args(
            user_agent=settings.browser_user_agent,
            referer=settings.platform_referer,
            socket_timeout_s=settings.extractor_socket_timeout_s,
            retries=settings.extractor_retries,
            player_client=self.profile.player_client,
            sleep_interval_s=settings.extractor_sleep_interval_s,
            max_sleep_interval_s=settings.extractor_max_sleep_interval_s,
        )
        if self.profile.use_cookies and context.cookies_path is not None:
            args += ["--cookies", str(context.cookies_path)]
        if context.identity is not None:
            args += ["--proxy", context.identity.proxy_url]
        args.append(context.resource_url)
        return args

    async def _acquire(self, context: AttemptContext) -> None:
        context.staging_path.parent.mkdir(parents=True, exist_ok=True)
        args = self.build_args(context)
        logger.debug(
            f"[{self.name}] Running extractor for {context.resource_id} "
            f"(proxy={'yes' if context.identity else 'no'}, cookies={'yes' if '--cookies' in args else 'no'})"
        )

        result = await self.runner.run(args, timeout_s=self.timeout_s)
        if result.exit_code != 0:
            kind = classify_tool_output(result.exit_code, result.stderr, result.stdout)
            summary = summarize_output(result.stderr or result.stdout) or f"exit code {result.exit_code}"
            raise exception_for(
                kind,
                summary,
                {
                    "strategy": self.name,
                    "exit_code": result.exit_code,
                    "operation": self.name,
                    "timeout_s": settings.extractor_socket_timeout_s,
                },
            )

        logger.debug(f"[{self.name}] Extractor finished in {result.elapsed_ms:.0f}ms")
