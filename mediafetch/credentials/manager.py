"""Credential Freshness Manager - 쿠키 파일 신선도 관리

- 생성 시각(created_at)은 메모리에 보관하고, 첫 사용 시 파일 mtime으로 초기화합니다.
- 재생성은 asyncio.Lock으로 단일 실행(single flight)되며 락 획득 후 신선도를 다시 확인합니다.
- 재생성 실패 시 기존 파일은 건드리지 않습니다.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from mediafetch.core.clock import Clock, wall_clock
from mediafetch.core.config import settings
from mediafetch.core.exceptions import CredentialRefreshException
from mediafetch.core.logging import logger

from .cookie_jar import write_cookie_file

if TYPE_CHECKING:
    from .harvester import SessionHarvester


class CredentialManager:
    """쿠키(자격 증명) 파일 관리자

    Usage:
        manager = CredentialManager(Path("cookies.txt"), harvester)
        if await manager.ensure_fresh():
            args += ["--cookies", str(manager.path)]
    """

    def __init__(
        self,
        path: Path,
        harvester: SessionHarvester,
        *,
        ttl_s: float = 1800.0,
        refresh_timeout_s: float = 60.0,
        refresh_interval_s: float = 1500.0,
        clock: Clock = wall_clock,
    ) -> None:
        self.path = Path(path)
        self._harvester = harvester
        self.ttl_s = ttl_s
        self.refresh_timeout_s = refresh_timeout_s
        self.refresh_interval_s = refresh_interval_s
        self._clock = clock

        self._lock = asyncio.Lock()
        self._created_at: Optional[float] = None
        self._background_task: Optional[asyncio.Task] = None
        self.refresh_count = 0
        self.last_error: Optional[str] = None

    @classmethod
    def from_settings(cls, harvester: Optional[SessionHarvester] = None) -> "CredentialManager":
        if harvester is None:
            from .harvester import PlaywrightSessionHarvester
            from mediafetch.fetchers.playwright.session_pool import get_browser_session_pool

            harvester = PlaywrightSessionHarvester(
                get_browser_session_pool(),
                settings.cookie_landing_url,
                settings.cookie_domain,
                settle_s=settings.cookie_settle_s,
                navigation_timeout_ms=settings.browser_navigation_timeout_ms,
            )
        return cls(
            Path(settings.cookies_path),
            harvester,
            ttl_s=settings.cookie_ttl_s,
            refresh_timeout_s=settings.cookie_refresh_timeout_s,
            refresh_interval_s=settings.cookie_refresh_interval_s,
        )

    def _created_at_or_mtime(self) -> Optional[float]:
        if not self.path.exists():
            return None
        if self._created_at is None:
            try:
                self._created_at = os.path.getmtime(self.path)
            except OSError:
                return None
        return self._created_at

    def age_s(self) -> Optional[float]:
        created_at = self._created_at_or_mtime()
        if created_at is None:
            return None
        return max(0.0, self._clock() - created_at)

    def is_fresh(self) -> bool:
        age = self.age_s()
        return age is not None and age < self.ttl_s

    async def ensure_fresh(self) -> bool:
        """신선한 쿠키 파일 보장

        Returns:
            bool: 사용 가능한 신선한 파일이 있으면 True, 재생성 실패 시 False
        """
        if self.is_fresh():
            return True

        async with self._lock:
            # 대기 중 다른 호출자가 이미 재생성했을 수 있음
            if self.is_fresh():
                return True
            try:
                await self._regenerate()
                return True
            except CredentialRefreshException as e:
                logger.warning(f"[Credentials] {e.message}")
                return False

    async def refresh(self) -> None:
        """신선도와 무관하게 재생성

        Raises:
            CredentialRefreshException: 재생성 실패
        """
        async with self._lock:
            await self._regenerate()

    async def _regenerate(self) -> None:
        logger.info(f"[Credentials] Regenerating cookie file: {self.path}")
        try:
            records = await asyncio.wait_for(self._harvester.harvest(), timeout=self.refresh_timeout_s)
        except asyncio.TimeoutError as e:
            self.last_error = "timeout"
            raise CredentialRefreshException(
                f"harvest timed out after {self.refresh_timeout_s}s",
                {"timeout_s": self.refresh_timeout_s},
            ) from e
        except CredentialRefreshException:
            raise
        except Exception as e:
            self.last_error = type(e).__name__
            raise CredentialRefreshException(f"{type(e).__name__}: {e}") from e

        if not records:
            self.last_error = "empty"
            raise CredentialRefreshException("harvest returned no cookies")

        try:
            count = write_cookie_file(self.path, records)
        except OSError as e:
            self.last_error = type(e).__name__
            raise CredentialRefreshException(f"write failed: {e}") from e

        self._created_at = self._clock()
        self.refresh_count += 1
        self.last_error = None
        logger.info(f"[Credentials] Wrote {count} cookies to {self.path}")

    def start_background_refresh(self) -> None:
        if self._background_task is not None and not self._background_task.done():
            return
        self._background_task = asyncio.create_task(self._background_loop())
        logger.info(f"[Credentials] Background refresh started (every {self.refresh_interval_s:.0f}s)")

    async def _background_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval_s)
            try:
                await self.refresh()
            except CredentialRefreshException as e:
                logger.warning(f"[Credentials] Background refresh failed: {e.message}")
            except Exception as e:
                logger.error(f"[Credentials] Background refresh error: {type(e).__name__}: {e}")

    async def stop(self) -> None:
        task = self._background_task
        self._background_task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def stats(self) -> dict:
        age = self.age_s()
        return {
            "path": str(self.path),
            "fresh": self.is_fresh(),
            "age_s": round(age, 1) if age is not None else None,
            "ttl_s": self.ttl_s,
            "refresh_count": self.refresh_count,
            "last_error": self.last_error,
        }
