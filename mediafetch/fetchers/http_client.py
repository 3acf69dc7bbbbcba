"""공유 HTTP 클라이언트 (curl_cffi)

- 직접 스트림 다운로드마다 AsyncSession을 만들면 TLS/커넥션 오버헤드가 커서
  프로세스 단위로 세션을 재사용합니다.
- 브라우저 TLS 지문(impersonate)으로 요청합니다.
- 앱 종료 시 close()로 정리합니다.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, Optional

from curl_cffi.requests import AsyncSession

from mediafetch.core.config import settings
from mediafetch.core.exceptions import (
    AcquisitionError,
    AcquisitionTimeoutException,
    ErrorKind,
    ExtractionFailedException,
)
from mediafetch.core.logging import logger, mask_credentials
from mediafetch.engine.classifier import classify_http_status, classify_text, exception_for


class SharedHttpClient:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._session: Optional[AsyncSession] = None

    async def _ensure_session(self) -> AsyncSession:
        async with self._lock:
            if self._session is not None:
                return self._session
            self._session = AsyncSession(
                impersonate=settings.http_impersonate,
                headers=self.default_headers(),
                allow_redirects=True,
                max_clients=settings.http_max_clients,
                trust_env=False,
            )
            return self._session

    def default_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": settings.browser_user_agent,
            "Accept": "*/*",
            "Accept-Language": f"{settings.browser_locale},en;q=0.9",
            "Referer": settings.platform_referer,
        }

    async def download_to(
        self,
        url: str,
        path: Path,
        *,
        timeout_s: float,
        max_bytes: int,
        headers: Optional[Dict[str, str]] = None,
        proxy_url: Optional[str] = None,
    ) -> int:
        """URL을 path로 스트리밍 저장

        Args:
            url: 직접 미디어 URL
            path: 저장 경로 (스테이징)
            timeout_s: 전체 제한 시간 (초)
            max_bytes: 최대 크기, 초과 시 중단
            headers: 추가 헤더
            proxy_url: 프록시 URL

        Returns:
            int: 저장된 바이트 수

        Raises:
            AcquisitionError: 분류된 실패 (부분 파일 정리는 호출자 책임)
        """
        try:
            return await asyncio.wait_for(
                self._download(url, path, max_bytes=max_bytes, headers=headers, proxy_url=proxy_url),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise AcquisitionTimeoutException(
                "direct download", timeout_s, {"operation": "direct download", "timeout_s": timeout_s}
            ) from e

    async def _download(
        self,
        url: str,
        path: Path,
        *,
        max_bytes: int,
        headers: Optional[Dict[str, str]],
        proxy_url: Optional[str],
    ) -> int:
        sess = await self._ensure_session()
        proxies = {"http": proxy_url, "https": proxy_url} if proxy_url else None

        try:
            resp = await sess.get(url, headers=headers, proxies=proxies, stream=True)
        except Exception as e:
            kind = classify_text(str(e)) or ErrorKind.EXTRACTION_FAILED
            logger.info(f"[HTTP_CLIENT] GET failed: {type(e).__name__}: {mask_credentials(str(e))[:200]}")
            raise exception_for(kind, f"Direct download request failed: {type(e).__name__}") from e

        try:
            status = getattr(resp, "status_code", 0) or 0
            kind = classify_http_status(status, not_found_kind=ErrorKind.UNAVAILABLE)
            if kind is not None:
                raise exception_for(kind, f"Direct download returned HTTP {status}", {"status": status})

            path.parent.mkdir(parents=True, exist_ok=True)
            written = 0
            with open(path, "wb") as f:
                async for chunk in resp.aiter_content():
                    if not chunk:
                        continue
                    written += len(chunk)
                    if written > max_bytes:
                        raise ExtractionFailedException(
                            f"Direct download exceeds {max_bytes} bytes",
                            {"max_bytes": max_bytes},
                        )
                    f.write(chunk)
            logger.debug(f"[HTTP_CLIENT] Downloaded {written} bytes to {path.name}")
            return written
        except AcquisitionError:
            raise
        except OSError as e:
            raise ExtractionFailedException(f"Failed to write stream: {e}") from e
        except Exception as e:
            kind = classify_text(str(e)) or ErrorKind.EXTRACTION_FAILED
            logger.info(f"[HTTP_CLIENT] Stream read failed: {type(e).__name__}")
            raise exception_for(kind, f"Direct download interrupted: {type(e).__name__}") from e
        finally:
            try:
                await resp.aclose()
            except Exception as e:
                logger.debug(f"[HTTP_CLIENT] Response close failed: {type(e).__name__}")

    async def check_proxy(self, url: str, *, proxy_url: Optional[str], timeout_s: float) -> bool:
        """프록시 경유 연결 점검 (4xx/5xx/연결 실패/시간 초과면 False)"""
        sess = await self._ensure_session()
        proxies = {"http": proxy_url, "https": proxy_url} if proxy_url else None
        try:
            resp = await asyncio.wait_for(sess.get(url, proxies=proxies, timeout=timeout_s), timeout=timeout_s)
        except asyncio.TimeoutError:
            logger.info(f"[HTTP_CLIENT] Proxy check timed out after {timeout_s}s")
            return False
        except Exception as e:
            logger.info(f"[HTTP_CLIENT] Proxy check failed: {type(e).__name__}: {mask_credentials(str(e))[:200]}")
            return False
        status = getattr(resp, "status_code", 0) or 0
        return 0 < status < 400

    async def close(self) -> None:
        async with self._lock:
            if self._session is None:
                return
            try:
                await self._session.close()
            except Exception as e:
                logger.warning(f"[HTTP_CLIENT] Session close failed: {type(e).__name__}: {e}")
            self._session = None


_shared_http_client = SharedHttpClient()


def get_shared_http_client() -> SharedHttpClient:
    return _shared_http_client


async def shutdown_shared_http_client() -> None:
    await _shared_http_client.close()
