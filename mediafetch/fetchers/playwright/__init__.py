"""Playwright 브라우저 추출 모듈."""

from .extractor import (
    BrowserExtraction,
    BrowserExtractor,
    StreamCandidate,
    collect_stream_candidates,
    find_player_response,
    pick_lowest_quality,
    read_title,
)
from .pages import configure_page, dismiss_consent, read_media_source
from .session_pool import (
    BrowserConfig,
    BrowserSessionPool,
    get_browser_session_pool,
    shutdown_browser_session_pool,
)

__all__ = [
    "BrowserConfig",
    "BrowserExtraction",
    "BrowserExtractor",
    "BrowserSessionPool",
    "StreamCandidate",
    "collect_stream_candidates",
    "configure_page",
    "dismiss_consent",
    "find_player_response",
    "get_browser_session_pool",
    "pick_lowest_quality",
    "read_media_source",
    "read_title",
    "shutdown_browser_session_pool",
]
