"""브라우저 추출기 테스트 (Playwright 페이지는 Mock으로 대체)"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from mediafetch.core.exceptions import (
    AccessDeniedException,
    AcquisitionTimeoutException,
    AgeGateException,
    ExtractionFailedException,
    ResourceNotFoundException,
)
from mediafetch.credentials.harvester import PlaywrightSessionHarvester
from mediafetch.fetchers.playwright import (
    BrowserConfig,
    BrowserExtractor,
    BrowserSessionPool,
    StreamCandidate,
    collect_stream_candidates,
    find_player_response,
    pick_lowest_quality,
    read_title,
)
from mediafetch.identity import Identity


def _player_html(player_response: dict, title: str = "Test Video") -> str:
    return (
        "<html><head>"
        f'<meta property="og:title" content="{title}">'
        "<title>ignored - YouTube</title>"
        "</head><body>"
        f"<script>var ytInitialPlayerResponse = {json.dumps(player_response)};var meta = {{}};</script>"
        "</body></html>"
    )


PLAYABLE = {
    "playabilityStatus": {"status": "OK"},
    "streamingData": {
        "formats": [
            {"url": "https://cdn.example/360.mp4", "mimeType": 'video/mp4; codecs="avc1"', "qualityLabel": "360p"},
            {"url": "https://cdn.example/144.mp4", "mimeType": 'video/mp4; codecs="avc1"', "qualityLabel": "144p"},
            {"url": "https://cdn.example/720.webm", "mimeType": "video/webm", "qualityLabel": "720p"},
        ]
    },
}


class TestPureHelpers:
    def test_find_player_response_handles_braces_in_strings(self) -> None:
        response = {"videoDetails": {"title": "weird } { title"}, "streamingData": {}}
        assert find_player_response(_player_html(response)) == response

    def test_find_player_response_missing(self) -> None:
        assert find_player_response("<html><script>var x = 1;</script></html>") is None
        assert find_player_response("") is None

    def test_collect_prefers_muxed_mp4(self) -> None:
        candidates = collect_stream_candidates(PLAYABLE)
        assert [c.quality for c in candidates] == ["360p", "144p"]

    def test_collect_falls_back_to_adaptive_video(self) -> None:
        response = {
            "streamingData": {
                "formats": [],
                "adaptiveFormats": [
                    {"url": "https://cdn.example/a.m4a", "mimeType": "audio/mp4", "quality": "tiny"},
                    {"url": "https://cdn.example/v.mp4", "mimeType": "video/mp4", "qualityLabel": "240p"},
                ],
            }
        }
        assert [c.url for c in collect_stream_candidates(response)] == ["https://cdn.example/v.mp4"]

    def test_pick_lowest_quality(self) -> None:
        chosen = pick_lowest_quality(
            [
                StreamCandidate(url="a", quality="720p60"),
                StreamCandidate(url="b", quality="240p"),
                StreamCandidate(url="c", quality="unknown"),
            ]
        )
        assert chosen.url == "b"
        assert pick_lowest_quality([]) is None

    def test_read_title(self) -> None:
        assert read_title(_player_html({}, title="Hello")) == "Hello"
        assert read_title("<html><head><title>Plain</title></head></html>") == "Plain"
        assert read_title("") is None


class TestBrowserConfig:
    def test_context_options_with_proxy(self) -> None:
        config = BrowserConfig.from_settings(proxy=Identity.parse("user:pw@1.2.3.4:8080"))
        options = config.context_options()

        assert options["proxy"] == {"server": "http://1.2.3.4:8080", "username": "user", "password": "pw"}
        assert options["viewport"] == {"width": config.viewport_width, "height": config.viewport_height}
        assert "Referer" in options["extra_http_headers"]

    def test_reuse_key_depends_on_proxy(self) -> None:
        a = BrowserConfig.from_settings()
        b = BrowserConfig.from_settings(proxy=Identity.parse("1.2.3.4:8080"))
        assert a.reuse_key != b.reuse_key
        assert a.reuse_key == BrowserConfig.from_settings().reuse_key


def _fake_context() -> MagicMock:
    return MagicMock(close=AsyncMock(), add_init_script=AsyncMock())


class TestBrowserSessionPool:
    @pytest.mark.asyncio
    async def test_overflow_session_is_closed_on_release(self) -> None:
        pool = BrowserSessionPool(max_sessions=1)
        contexts = [_fake_context(), _fake_context()]
        browser = MagicMock()
        browser.new_context = AsyncMock(side_effect=contexts)
        pool.ensure_browser = AsyncMock(return_value=browser)

        async with pool.session(BrowserConfig.from_settings()):
            pass
        async with pool.session(BrowserConfig.from_settings(proxy=Identity.parse("1.2.3.4:8080"))):
            pass

        assert pool.idle_count == 1
        contexts[0].close.assert_not_awaited()
        contexts[1].close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_idle_session_is_reused(self) -> None:
        pool = BrowserSessionPool(max_sessions=2)
        browser = MagicMock()
        browser.new_context = AsyncMock(return_value=_fake_context())
        pool.ensure_browser = AsyncMock(return_value=browser)

        for _ in range(3):
            async with pool.session(BrowserConfig.from_settings()):
                pass

        assert browser.new_context.await_count == 1


def _fake_page(
    *,
    status: Optional[int] = 200,
    html: str = "",
    media_src: Optional[str] = None,
    goto_error: Optional[Exception] = None,
) -> MagicMock:
    page = MagicMock()
    page.set_default_timeout = MagicMock()
    page.route = AsyncMock()
    response = MagicMock(status=status) if status is not None else None
    page.goto = AsyncMock(side_effect=goto_error, return_value=response)
    page.query_selector = AsyncMock(return_value=None)
    page.wait_for_selector = AsyncMock(side_effect=PlaywrightTimeoutError("no video"))
    page.evaluate = AsyncMock(return_value=media_src)
    page.content = AsyncMock(return_value=html)
    page.title = AsyncMock(return_value="")
    page.close = AsyncMock()
    return page


class FakeSessionPool:
    def __init__(self, page: MagicMock, cookies: Optional[list] = None) -> None:
        self.page = page
        self.context = MagicMock()
        self.context.new_page = AsyncMock(return_value=page)
        self.context.cookies = AsyncMock(return_value=cookies or [])
        self.configs: list[BrowserConfig] = []

    @asynccontextmanager
    async def session(self, config: BrowserConfig):
        self.configs.append(config)
        yield self.context


def _extractor(page: MagicMock) -> BrowserExtractor:
    return BrowserExtractor(FakeSessionPool(page), navigation_timeout_ms=1000, ready_timeout_ms=100)


@pytest.mark.asyncio
async def test_extract_prefers_media_element_source() -> None:
    page = _fake_page(html=_player_html(PLAYABLE), media_src="https://cdn.example/element.mp4")

    extraction = await _extractor(page).extract("abc", "https://www.youtube.com/watch?v=abc", BrowserConfig.from_settings())

    assert extraction.direct_url == "https://cdn.example/element.mp4"
    assert extraction.title == "Test Video"
    page.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_extract_ignores_blob_and_uses_lowest_candidate() -> None:
    page = _fake_page(html=_player_html(PLAYABLE), media_src="blob:https://www.youtube.com/123")

    extraction = await _extractor(page).extract("abc", "https://www.youtube.com/watch?v=abc", BrowserConfig.from_settings())

    assert extraction.direct_url == "https://cdn.example/144.mp4"


@pytest.mark.asyncio
async def test_extract_age_gate() -> None:
    response = {"playabilityStatus": {"status": "LOGIN_REQUIRED", "reason": "Sign in to confirm your age"}}
    page = _fake_page(html=_player_html(response))

    with pytest.raises(AgeGateException):
        await _extractor(page).extract("abc", "https://www.youtube.com/watch?v=abc", BrowserConfig.from_settings())


@pytest.mark.asyncio
async def test_extract_http_status_classified() -> None:
    with pytest.raises(AccessDeniedException):
        await _extractor(_fake_page(status=429)).extract("abc", "u", BrowserConfig.from_settings())
    with pytest.raises(ResourceNotFoundException):
        await _extractor(_fake_page(status=404)).extract("abc", "u", BrowserConfig.from_settings())


@pytest.mark.asyncio
async def test_extract_navigation_timeout() -> None:
    page = _fake_page(goto_error=PlaywrightTimeoutError("Timeout 1000ms exceeded"))

    with pytest.raises(AcquisitionTimeoutException):
        await _extractor(page).extract("abc", "u", BrowserConfig.from_settings())
    page.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_extract_nothing_found() -> None:
    page = _fake_page(html="<html><body>empty</body></html>")

    with pytest.raises(ExtractionFailedException):
        await _extractor(page).extract("abc", "u", BrowserConfig.from_settings())


@pytest.mark.asyncio
async def test_harvester_filters_domain() -> None:
    page = _fake_page()
    pool = FakeSessionPool(
        page,
        cookies=[
            {"name": "PREF", "value": "1", "domain": ".youtube.com", "path": "/", "expires": -1},
            {"name": "NID", "value": "2", "domain": ".google.com", "path": "/", "expires": 0},
            {"name": "SID", "value": "3", "domain": "notyoutube.com", "path": "/", "expires": 0},
            {"name": "LOGIN", "value": "4", "domain": "accounts.youtube.com", "path": "/", "expires": 0},
        ],
    )
    harvester = PlaywrightSessionHarvester(pool, "https://www.youtube.com/", ".youtube.com", settle_s=0)

    records = await harvester.harvest()

    assert [r.name for r in records] == ["PREF", "LOGIN"]
    page.goto.assert_awaited_once()
