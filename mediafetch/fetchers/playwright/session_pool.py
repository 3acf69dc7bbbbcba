"""Playwright 브라우저/세션(BrowserContext) 풀

하나의 공유 브라우저 위에서 설정별 컨텍스트를 재사용합니다.
동시에 사용 중인 세션 수는 browser_max_sessions로 제한합니다.
"""

from __future__ import annotations

import asyncio
import platform
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright

from mediafetch.core.config import settings
from mediafetch.core.exceptions import BrowserException
from mediafetch.core.logging import logger
from mediafetch.identity import Identity

LAUNCH_ATTEMPTS = 3

# navigator.webdriver 등 자동화 흔적 정규화
DEFAULT_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
window.chrome = window.chrome || { runtime: {} };
"""


def build_launch_args() -> list[str]:
    args: list[str] = [
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-blink-features=AutomationControlled",
        "--disable-background-networking",
        "--disable-background-timer-throttling",
        "--disable-renderer-backgrounding",
        "--disable-default-apps",
        "--disable-extensions",
        "--no-first-run",
        "--no-default-browser-check",
        "--autoplay-policy=no-user-gesture-required",
    ]

    if platform.system().lower() == "linux":
        args.extend(["--no-sandbox", "--disable-setuid-sandbox"])

    deduped: list[str] = []
    seen: set[str] = set()
    for a in args:
        if a not in seen:
            seen.add(a)
            deduped.append(a)
    return deduped


@dataclass(frozen=True)
class BrowserConfig:
    """세션 설정 계약 (뷰포트, UA, 헤더, 로케일, init script, 프록시)"""

    user_agent: str
    viewport_width: int = 1366
    viewport_height: int = 768
    locale: str = "en-US"
    extra_headers: tuple[tuple[str, str], ...] = ()
    init_script: Optional[str] = DEFAULT_INIT_SCRIPT
    proxy: Optional[Identity] = field(default=None)

    @classmethod
    def from_settings(cls, proxy: Optional[Identity] = None) -> "BrowserConfig":
        return cls(
            user_agent=settings.browser_user_agent,
            viewport_width=settings.browser_viewport_width,
            viewport_height=settings.browser_viewport_height,
            locale=settings.browser_locale,
            extra_headers=(
                ("Accept-Language", f"{settings.browser_locale},en;q=0.9"),
                ("Referer", settings.platform_referer),
            ),
            proxy=proxy,
        )

    @property
    def reuse_key(self) -> tuple:
        """같은 키의 유휴 컨텍스트만 재사용"""
        return (
            self.user_agent,
            self.viewport_width,
            self.viewport_height,
            self.locale,
            self.extra_headers,
            self.init_script,
            self.proxy.key if self.proxy else None,
        )

    def context_options(self) -> dict:
        options: dict = {
            "user_agent": self.user_agent,
            "viewport": {"width": self.viewport_width, "height": self.viewport_height},
            "locale": self.locale,
            "extra_http_headers": dict(self.extra_headers),
        }
        if self.proxy is not None:
            proxy: dict = {"server": self.proxy.server_url}
            if self.proxy.username:
                proxy["username"] = self.proxy.username
                proxy["password"] = self.proxy.password or ""
            options["proxy"] = proxy
        return options


class BrowserSessionPool:
    """BrowserContext 풀

    Usage:
        pool = get_browser_session_pool()
        async with pool.session(BrowserConfig.from_settings()) as context:
            page = await context.new_page()
            ...
    """

    def __init__(self, max_sessions: int = 3, launch_timeout_s: float = 25.0) -> None:
        self.max_sessions = max_sessions
        self.launch_timeout_s = launch_timeout_s
        self._semaphore = asyncio.Semaphore(max_sessions)
        self._lock = asyncio.Lock()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._idle: dict[tuple, list[BrowserContext]] = {}
        self._in_use = 0

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def idle_count(self) -> int:
        return sum(len(v) for v in self._idle.values())

    async def ensure_browser(self) -> Browser:
        async with self._lock:
            if self._browser is not None:
                try:
                    if self._browser.is_connected():
                        return self._browser
                except Exception as e:
                    logger.debug(f"[BrowserPool] Connection check failed: {type(e).__name__}")
            await self._close_locked()

            last_err: Optional[Exception] = None
            for attempt in range(1, LAUNCH_ATTEMPTS + 1):
                try:
                    logger.info(f"[BrowserPool] Launching browser (attempt {attempt}/{LAUNCH_ATTEMPTS})...")
                    pw = await asyncio.wait_for(async_playwright().start(), timeout=20.0)
                    self._playwright = pw
                    browser = await asyncio.wait_for(
                        pw.chromium.launch(headless=True, args=build_launch_args()),
                        timeout=self.launch_timeout_s,
                    )
                    self._browser = browser
                    logger.info("[BrowserPool] Browser launched successfully")
                    return browser
                except Exception as e:
                    last_err = e
                    logger.error(
                        f"[BrowserPool] Failed to launch browser (attempt {attempt}/{LAUNCH_ATTEMPTS}): "
                        f"{type(e).__name__}: {e}"
                    )
                    await self._close_locked()
                    wait_time = min(2.0 * attempt, 10.0)
                    logger.info(f"[BrowserPool] Waiting {wait_time:.1f}s before retry...")
                    await asyncio.sleep(wait_time)

            raise BrowserException(
                f"Browser launch failed after {LAUNCH_ATTEMPTS} attempts: {last_err}",
                {"attempts": LAUNCH_ATTEMPTS},
            )

    @asynccontextmanager
    async def session(self, config: BrowserConfig) -> AsyncIterator[BrowserContext]:
        """세션 대여

        정상 종료 시 유휴 목록으로 반환, 예외 시 컨텍스트를 닫습니다.
        """
        async with self._semaphore:
            context = await self._acquire(config)
            self._in_use += 1
            healthy = False
            try:
                yield context
                healthy = True
            finally:
                self._in_use -= 1
                if healthy:
                    await self._release(config, context)
                else:
                    await _close_context(context)

    async def _acquire(self, config: BrowserConfig) -> BrowserContext:
        idle = self._idle.get(config.reuse_key)
        if idle:
            context = idle.pop()
            logger.debug("[BrowserPool] Reusing idle session")
            return context

        browser = await self.ensure_browser()
        context = await browser.new_context(**config.context_options())
        if config.init_script:
            await context.add_init_script(config.init_script)
        logger.debug(f"[BrowserPool] Created session (proxy={'yes' if config.proxy else 'no'})")
        return context

    async def _release(self, config: BrowserConfig, context: BrowserContext) -> None:
        if self.idle_count >= self.max_sessions:
            await _close_context(context)
            return
        self._idle.setdefault(config.reuse_key, []).append(context)

    async def shutdown(self) -> None:
        async with self._lock:
            await self._close_locked()

    async def _close_locked(self) -> None:
        contexts = [c for group in self._idle.values() for c in group]
        self._idle.clear()
        for context in contexts:
            await _close_context(context)

        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.warning(f"[BrowserPool] Browser close failed: {type(e).__name__}: {e}")
            self._browser = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning(f"[BrowserPool] Playwright stop failed: {type(e).__name__}: {e}")
            self._playwright = None


async def _close_context(context: BrowserContext) -> None:
    try:
        await context.close()
    except Exception as e:
        logger.warning(f"[BrowserPool] Context close failed: {type(e).__name__}: {e}")


_shared_pool: Optional[BrowserSessionPool] = None


def get_browser_session_pool() -> BrowserSessionPool:
    global _shared_pool
    if _shared_pool is None:
        _shared_pool = BrowserSessionPool(
            max_sessions=settings.browser_max_sessions,
            launch_timeout_s=settings.browser_launch_timeout_s,
        )
    return _shared_pool


async def shutdown_browser_session_pool() -> None:
    global _shared_pool
    if _shared_pool is None:
        return
    await _shared_pool.shutdown()
    _shared_pool = None
