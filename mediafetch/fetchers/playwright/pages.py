"""Playwright page 설정/보조 함수.

리소스 차단, 동의(consent) 다이얼로그 처리, 미디어 요소 조회를 분리합니다.
"""

from __future__ import annotations

from typing import Optional

from playwright.async_api import Page

from mediafetch.core.logging import logger

BLOCKED_RESOURCE_TYPES = {"image", "font", "stylesheet"}

CONSENT_SELECTORS = (
    'button[aria-label*="Accept"]',
    'button[aria-label*="Reject"]',
    'button:has-text("Accept all")',
    'button:has-text("I agree")',
    "tp-yt-paper-button#button",
)

MEDIA_SOURCE_SCRIPT = """
() => {
    const video = document.querySelector('video');
    if (!video) return null;
    return video.currentSrc || video.src || null;
}
"""


async def configure_page(page: Page, timeout_ms: int) -> Page:
    page.set_default_timeout(timeout_ms)

    async def _route_handler(route, request):
        try:
            if request.resource_type in BLOCKED_RESOURCE_TYPES:
                await route.abort()
                return
            await route.continue_()
        except Exception as e:
            logger.debug(f"[BrowserPage] Route handling failed: {type(e).__name__}")

    try:
        await page.route("**/*", _route_handler)
    except Exception as e:
        logger.debug(f"[BrowserPage] Route setup failed: {type(e).__name__}")

    return page


async def dismiss_consent(page: Page, timeout_ms: int = 2000) -> bool:
    """동의 다이얼로그가 보이면 첫 번째 매칭 버튼 클릭

    Returns:
        bool: 클릭 여부
    """
    for selector in CONSENT_SELECTORS:
        try:
            button = await page.query_selector(selector)
            if button is None or not await button.is_visible():
                continue
            await button.click(timeout=timeout_ms)
            logger.info(f"[BrowserPage] Dismissed consent dialog via {selector}")
            try:
                await page.wait_for_load_state("domcontentloaded", timeout=timeout_ms * 2)
            except Exception:
                logger.debug("[BrowserPage] Load state wait after consent timed out")
            return True
        except Exception as e:
            logger.debug(f"[BrowserPage] Consent selector {selector} failed: {type(e).__name__}")
    return False


async def read_media_source(page: Page) -> Optional[str]:
    """video 요소의 currentSrc/src (blob: 은 다운로드 불가라 제외)"""
    try:
        src = await page.evaluate(MEDIA_SOURCE_SCRIPT)
    except Exception as e:
        logger.debug(f"[BrowserPage] Media source evaluation failed: {type(e).__name__}")
        return None
    if not src or not isinstance(src, str) or src.startswith("blob:"):
        return None
    return src
