"""Session Harvester - 브라우저 세션으로 쿠키 수집"""

from __future__ import annotations

import asyncio
from typing import Protocol

from mediafetch.core.logging import logger
from mediafetch.fetchers.playwright.pages import configure_page, dismiss_consent
from mediafetch.fetchers.playwright.session_pool import BrowserConfig, BrowserSessionPool

from .cookie_jar import CookieRecord


class SessionHarvester(Protocol):
    """쿠키 수집기 인터페이스"""

    async def harvest(self) -> list[CookieRecord]:
        ...


class PlaywrightSessionHarvester:
    """랜딩 페이지를 방문해 context.cookies() 를 수집

    Args:
        pool: 브라우저 세션 풀
        landing_url: 방문할 페이지
        domain: 수집 대상 쿠키 도메인 (예: ".youtube.com")
        settle_s: 로드 후 쿠키가 설정될 때까지 대기 시간
        navigation_timeout_ms: 네비게이션 제한 시간
    """

    def __init__(
        self,
        pool: BrowserSessionPool,
        landing_url: str,
        domain: str,
        *,
        settle_s: float = 3.0,
        navigation_timeout_ms: int = 30000,
    ) -> None:
        self._pool = pool
        self.landing_url = landing_url
        self.domain = domain
        self.settle_s = settle_s
        self.navigation_timeout_ms = navigation_timeout_ms

    def _matches_domain(self, cookie_domain: str) -> bool:
        bare = self.domain.lstrip(".")
        host = cookie_domain.lstrip(".")
        return host == bare or host.endswith("." + bare)

    async def harvest(self) -> list[CookieRecord]:
        config = BrowserConfig.from_settings()
        async with self._pool.session(config) as context:
            page = await context.new_page()
            try:
                await configure_page(page, self.navigation_timeout_ms)
                await page.goto(self.landing_url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)
                await dismiss_consent(page)
                await asyncio.sleep(self.settle_s)
                raw_cookies = await context.cookies()
            finally:
                try:
                    await page.close()
                except Exception as e:
                    logger.debug(f"[Harvester] Page close failed: {type(e).__name__}")

        records = [
            CookieRecord.from_playwright(c)
            for c in raw_cookies
            if self._matches_domain(str(c.get("domain", "")))
        ]
        logger.info(f"[Harvester] Harvested {len(records)} cookies for {self.domain}")
        return records
