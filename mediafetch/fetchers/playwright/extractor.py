"""Browser Extraction Adapter

렌더링된 플레이어 페이지에서 직접 다운로드 가능한 미디어 URL을 찾습니다.

단계:
1. 네비게이션 (제한 시간) 후 HTTP 상태 분류
2. 동의 다이얼로그 처리, video 요소 대기
3. video.currentSrc/src (blob: 제외)
4. 인라인 스크립트의 플레이어 응답 JSON → streamingData.formats / adaptiveFormats
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from selectolax.parser import HTMLParser

from mediafetch.core.exceptions import AcquisitionTimeoutException, ExtractionFailedException
from mediafetch.core.logging import logger
from mediafetch.engine.classifier import (
    classify_http_status,
    classify_playability,
    exception_for,
    playability_reason,
)

from .pages import configure_page, dismiss_consent, read_media_source
from .session_pool import BrowserConfig, BrowserSessionPool

PLAYER_RESPONSE_MARKER = "ytInitialPlayerResponse"

# 낮은 화질이 먼저 (작은 파일, 빠른 다운로드)
QUALITY_ORDER = (
    "tiny",
    "144p",
    "small",
    "240p",
    "medium",
    "360p",
    "large",
    "480p",
    "hd720",
    "720p",
    "hd1080",
    "1080p",
)

_HEIGHT_LABEL = re.compile(r"(\d{3,4})p")


@dataclass(frozen=True)
class StreamCandidate:
    url: str
    quality: str = ""
    mime_type: str = ""

    @property
    def rank(self) -> int:
        """화질 순위 (모르는 화질은 마지막)"""
        label = self.quality.lower()
        if label in QUALITY_ORDER:
            return QUALITY_ORDER.index(label)
        match = _HEIGHT_LABEL.search(label)
        if match and f"{match.group(1)}p" in QUALITY_ORDER:
            return QUALITY_ORDER.index(f"{match.group(1)}p")
        return len(QUALITY_ORDER)


@dataclass
class BrowserExtraction:
    direct_url: str
    title: Optional[str] = None
    candidates: list[StreamCandidate] = field(default_factory=list)

    def download_urls(self, limit: int) -> list[str]:
        """다운로드 시도 순서: direct_url 먼저, 이후 낮은 화질 순 (중복 제외, 최대 limit개)"""
        urls = [self.direct_url]
        for candidate in sorted(self.candidates, key=lambda c: c.rank):
            if candidate.url not in urls:
                urls.append(candidate.url)
        return urls[:limit]


def pick_lowest_quality(candidates: list[StreamCandidate]) -> Optional[StreamCandidate]:
    if not candidates:
        return None
    return min(candidates, key=lambda c: c.rank)


def _extract_json_object(text: str, start: int) -> Optional[str]:
    """text[start] 의 '{' 부터 짝이 맞는 '}' 까지 잘라냄 (문자열 내부 괄호 무시)"""
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : idx + 1]
    return None


def find_player_response(html: str) -> Optional[dict[str, Any]]:
    """인라인 스크립트에서 플레이어 응답 JSON 파싱"""
    if not html:
        return None
    tree = HTMLParser(html)
    for node in tree.css("script"):
        script = node.text(deep=True) or ""
        marker = script.find(PLAYER_RESPONSE_MARKER)
        if marker < 0:
            continue
        brace = script.find("{", marker)
        if brace < 0:
            continue
        raw = _extract_json_object(script, brace)
        if not raw:
            continue
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.debug(f"[BrowserExtractor] Player response JSON decode failed: {e}")
            continue
        if isinstance(data, dict):
            return data
    return None


def collect_stream_candidates(player_response: Optional[dict[str, Any]]) -> list[StreamCandidate]:
    """streamingData.formats 의 mp4 항목, 없으면 adaptiveFormats 의 mp4 영상 항목"""
    if not player_response:
        return []
    streaming = player_response.get("streamingData") or {}

    def _collect(formats: list, video_only: bool) -> list[StreamCandidate]:
        found: list[StreamCandidate] = []
        for fmt in formats or []:
            if not isinstance(fmt, dict):
                continue
            url = fmt.get("url")
            mime = str(fmt.get("mimeType") or "")
            if not url or "mp4" not in mime:
                continue
            if video_only and not mime.startswith("video/"):
                continue
            quality = str(fmt.get("qualityLabel") or fmt.get("quality") or "")
            found.append(StreamCandidate(url=url, quality=quality, mime_type=mime))
        return found

    candidates = _collect(streaming.get("formats"), video_only=False)
    if not candidates:
        candidates = _collect(streaming.get("adaptiveFormats"), video_only=True)
    return candidates


def read_title(html: str) -> Optional[str]:
    if not html:
        return None
    tree = HTMLParser(html)
    og = tree.css_first('meta[property="og:title"]')
    if og is not None:
        content = (og.attributes.get("content") or "").strip()
        if content:
            return content
    title = tree.css_first("title")
    if title is not None:
        text = title.text(strip=True)
        return text or None
    return None


class BrowserExtractor:
    """헤드리스 브라우저 기반 미디어 URL 추출기

    Usage:
        extractor = BrowserExtractor(get_browser_session_pool())
        extraction = await extractor.extract(resource_id, url, BrowserConfig.from_settings())
    """

    def __init__(
        self,
        pool: BrowserSessionPool,
        *,
        navigation_timeout_ms: int = 30000,
        ready_timeout_ms: int = 20000,
    ) -> None:
        self._pool = pool
        self.navigation_timeout_ms = navigation_timeout_ms
        self.ready_timeout_ms = ready_timeout_ms

    async def extract(self, resource_id: str, url: str, config: BrowserConfig) -> BrowserExtraction:
        """미디어 URL 추출

        Raises:
            AcquisitionError: 분류된 실패 (없으면 ExtractionFailedException)
        """
        async with self._pool.session(config) as context:
            page = await context.new_page()
            try:
                return await self._extract_from_page(page, resource_id, url)
            finally:
                try:
                    await page.close()
                except Exception as e:
                    logger.debug(f"[BrowserExtractor] Page close failed: {type(e).__name__}")

    async def _extract_from_page(self, page, resource_id: str, url: str) -> BrowserExtraction:
        await configure_page(page, self.navigation_timeout_ms)

        try:
            response = await page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)
        except PlaywrightTimeoutError as e:
            raise AcquisitionTimeoutException("browser navigation", self.navigation_timeout_ms / 1000) from e

        status = response.status if response is not None else 0
        kind = classify_http_status(status) if status else None
        if kind is not None:
            raise exception_for(kind, f"Navigation returned HTTP {status}", {"status": status})

        await dismiss_consent(page)

        try:
            await page.wait_for_selector("video", state="attached", timeout=self.ready_timeout_ms)
        except PlaywrightTimeoutError:
            logger.debug(f"[BrowserExtractor] No video element for {resource_id}, falling back to scripts")

        media_src = await read_media_source(page)
        html = await page.content()
        title = read_title(html)
        if not title:
            try:
                title = (await page.title()) or None
            except Exception as e:
                logger.debug(f"[BrowserExtractor] Title read failed: {type(e).__name__}")

        player_response = find_player_response(html)
        candidates = collect_stream_candidates(player_response)

        if media_src:
            logger.info(f"[BrowserExtractor] Found media element source for {resource_id}")
            return BrowserExtraction(direct_url=media_src, title=title, candidates=candidates)

        playability = (player_response or {}).get("playabilityStatus")
        kind = classify_playability(playability)
        if kind is not None:
            reason = playability_reason(playability)
            raise exception_for(kind, f"Player reported: {reason[:200]}", {"playability": reason[:200]})

        chosen = pick_lowest_quality(candidates)
        if chosen is None:
            raise ExtractionFailedException(
                "No downloadable stream URL found in page",
                {"resource_id": resource_id, "player_response": player_response is not None},
            )

        logger.info(
            f"[BrowserExtractor] Selected {chosen.quality or 'unknown'} of {len(candidates)} candidates "
            f"for {resource_id}"
        )
        return BrowserExtraction(direct_url=chosen.url, title=title, candidates=candidates)
