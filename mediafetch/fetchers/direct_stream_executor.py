"""Direct Stream Executor - URL 해석 후 직접 다운로드

1. yt-dlp --get-url 로 낮은 화질의 단일 스트림 URL 해석
2. curl_cffi(브라우저 TLS 지문)로 스테이징 경로에 저장
"""

from __future__ import annotations

from typing import Optional

from mediafetch.core.config import settings
from mediafetch.core.exceptions import ExtractionFailedException
from mediafetch.core.logging import logger
from mediafetch.engine.classifier import classify_tool_output, exception_for, summarize_output
from mediafetch.engine.strategy import AttemptContext

from .executor import BaseExecutor
from .http_client import SharedHttpClient
from .process_runner import ProcessRunner
from .ytdlp_executor import common_tool_args


class DirectStreamExecutor(BaseExecutor):
    name = "direct-stream"

    def __init__(
        self,
        runner: ProcessRunner,
        http_client: SharedHttpClient,
        *,
        binary: Optional[str] = None,
        resolve_timeout_s: Optional[float] = None,
        download_timeout_s: Optional[float] = None,
        max_bytes: Optional[int] = None,
        fmt: Optional[str] = None,
    ) -> None:
        self.runner = runner
        self.http_client = http_client
        self.binary = binary or settings.extractor_binary
        self.resolve_timeout_s = resolve_timeout_s or settings.extractor_timeout_s
        self.download_timeout_s = download_timeout_s or settings.direct_download_timeout_s
        self.max_bytes = max_bytes or settings.direct_download_max_bytes
        self.fmt = fmt or settings.extractor_direct_format

    def build_args(self, context: AttemptContext) -> list[str]:
        args = [self.binary, "--get-url", "--format", self.fmt]
        args += common_tool_args(
            user_agent=settings.browser_user_agent,
            referer=settings.platform_referer,
            socket_timeout_s=settings.extractor_socket_timeout_s,
            retries=settings.extractor_retries,
            player_client="ios,web",
        )
        if context.cookies_path is not None:
            args += ["--cookies", str(context.cookies_path)]
        if context.identity is not None:
            args += ["--proxy", context.identity.proxy_url]
        args.append(context.resource_url)
        return args

    async def resolve_url(self, context: AttemptContext) -> str:
        result = await self.runner.run(self.build_args(context), timeout_s=self.resolve_timeout_s)
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

        urls = [line.strip() for line in result.stdout.splitlines() if line.strip().startswith("http")]
        if not urls:
            raise ExtractionFailedException(
                "Extractor returned no stream URL",
                {"strategy": self.name, "resource_id": context.resource_id},
            )
        if len(urls) > 1:
            # 분리 스트림(영상+음성)이면 첫 번째만 사용
            logger.info(f"[{self.name}] Extractor returned {len(urls)} URLs, using the first")
        return urls[0]

    async def _acquire(self, context: AttemptContext) -> None:
        url = await self.resolve_url(context)
        size = await self.http_client.download_to(
            url,
            context.staging_path,
            timeout_s=self.download_timeout_s,
            max_bytes=self.max_bytes,
            headers={"Referer": settings.platform_referer},
            proxy_url=context.identity.proxy_url if context.identity else None,
        )
        logger.debug(f"[{self.name}] Downloaded {size} bytes for {context.resource_id}")
