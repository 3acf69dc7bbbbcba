"""Browser Extract Executor - 브라우저로 URL 추출 후 직접 다운로드"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from mediafetch.core.config import settings
from mediafetch.core.exceptions import (
    AccessDeniedException,
    AcquisitionError,
    AcquisitionTimeoutException,
    ExtractionFailedException,
    ResourceUnavailableException,
)
from mediafetch.core.logging import logger, sanitize_for_log
from mediafetch.engine.strategy import AttemptContext
from mediafetch.identity import Identity

from .executor import BaseExecutor
from .http_client import SharedHttpClient
from .playwright.extractor import BrowserExtractor
from .playwright.session_pool import BrowserConfig

ConfigFactory = Callable[[Optional[Identity]], BrowserConfig]


class BrowserExtractExecutor(BaseExecutor):
    name = "browser-extract"

    def __init__(
        self,
        extractor: BrowserExtractor,
        http_client: SharedHttpClient,
        *,
        config_factory: ConfigFactory = BrowserConfig.from_settings,
        extract_timeout_s: Optional[float] = None,
        download_timeout_s: Optional[float] = None,
        max_bytes: Optional[int] = None,
        max_candidates: Optional[int] = None,
    ) -> None:
        self.extractor = extractor
        self.http_client = http_client
        self.config_factory = config_factory
        self.extract_timeout_s = extract_timeout_s or settings.browser_strategy_timeout_s
        self.download_timeout_s = download_timeout_s or settings.direct_download_timeout_s
        self.max_bytes = max_bytes or settings.direct_download_max_bytes
        self.max_candidates = max_candidates or settings.browser_max_download_candidates

    async def _acquire(self, context: AttemptContext) -> None:
        config = self.config_factory(context.identity)
        try:
            extraction = await asyncio.wait_for(
                self.extractor.extract(context.resource_id, context.resource_url, config),
                timeout=self.extract_timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise AcquisitionTimeoutException("browser extraction", self.extract_timeout_s) from e
        logger.info(
            f"[{self.name}] Extracted stream for {context.resource_id}: "
            f"title={sanitize_for_log(extraction.title or '', max_length=60)}"
        )

        urls = extraction.download_urls(self.max_candidates)
        last_error: Optional[AcquisitionError] = None
        for index, url in enumerate(urls, start=1):
            try:
                await self.http_client.download_to(
                    url,
                    context.staging_path,
                    timeout_s=self.download_timeout_s,
                    max_bytes=self.max_bytes,
                    headers={"Referer": settings.platform_referer, "User-Agent": config.user_agent},
                    proxy_url=context.identity.proxy_url if context.identity else None,
                )
                return
            except (AccessDeniedException, ResourceUnavailableException, ExtractionFailedException) as e:
                last_error = e
                context.staging_path.unlink(missing_ok=True)
                logger.warning(
                    f"[{self.name}] Candidate {index}/{len(urls)} failed for {context.resource_id}: "
                    f"{e.kind.value}"
                )
        raise last_error
