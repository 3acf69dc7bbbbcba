"""미디어 캐시 서비스 - 결과 파일 저장소

- 최종 파일: <media_dir>/<resource_id>.<ext>
- 스테이징: <media_dir>/.staging/<resource_id>.<strategy>[.<token>].<ext>
- 존재 + 최소 크기 초과가 유일한 유효성 기준입니다.
- 승격은 같은 파일시스템 안에서 os.replace 로 원자적으로 수행합니다.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from mediafetch.core.config import settings
from mediafetch.core.exceptions import EmptyArtifactException
from mediafetch.core.logging import logger
from mediafetch.core.security import SecurityValidator

STAGING_DIRNAME = ".staging"


def _safe_name(value: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in value)


@dataclass(frozen=True)
class CachedArtifact:
    resource_id: str
    path: Path
    size: int


class MediaCache:
    """결과 파일 캐시

    Usage:
        cache = MediaCache(Path("videos"))
        artifact = cache.lookup("dQw4w9WgXcQ")
        if artifact is None:
            staging = cache.staging_path("dQw4w9WgXcQ", "ytdlp-ios")
            ...
            artifact = cache.promote(staging, "dQw4w9WgXcQ")
    """

    def __init__(
        self,
        media_dir: Path,
        *,
        extension: str = "mp4",
        min_bytes: int = 1024,
        public_prefix: str = "/videos",
    ) -> None:
        self.media_dir = Path(media_dir)
        self.staging_dir = self.media_dir / STAGING_DIRNAME
        self.extension = extension.lstrip(".")
        self.min_bytes = min_bytes
        self.public_prefix = public_prefix.rstrip("/")

    @classmethod
    def from_settings(cls) -> "MediaCache":
        return cls(
            Path(settings.media_dir),
            extension=settings.media_extension,
            min_bytes=settings.min_artifact_bytes,
            public_prefix=settings.public_url_prefix,
        )

    def ensure_dirs(self) -> None:
        self.staging_dir.mkdir(parents=True, exist_ok=True)

    def artifact_path(self, resource_id: str) -> Path:
        resource_id = SecurityValidator.validate_resource_id(resource_id)
        return self.media_dir / f"{resource_id}.{self.extension}"

    def staging_path(self, resource_id: str, strategy: str, token: str = "") -> Path:
        """전략별 스테이징 경로 (token 으로 같은 리소스의 동시 수집을 구분)"""
        resource_id = SecurityValidator.validate_resource_id(resource_id)
        name = _safe_name(strategy)
        if token:
            name = f"{name}.{_safe_name(token)}"
        return self.staging_dir / f"{resource_id}.{name}.{self.extension}"

    def public_url(self, resource_id: str) -> str:
        return f"{self.public_prefix}/{self.artifact_path(resource_id).name}"

    def _size_if_valid(self, path: Path) -> Optional[int]:
        try:
            size = path.stat().st_size
        except OSError:
            return None
        return size if size > self.min_bytes else None

    def lookup(self, resource_id: str) -> Optional[CachedArtifact]:
        """유효한 캐시 조회

        크기 기준 미달 파일은 삭제하고 None을 반환합니다.
        """
        path = self.artifact_path(resource_id)
        if not path.exists():
            return None
        size = self._size_if_valid(path)
        if size is None:
            logger.warning(f"[MediaCache] Removing invalid cached artifact: {path.name}")
            self._unlink(path)
            return None
        return CachedArtifact(resource_id=resource_id, path=path, size=size)

    def validate(self, path: Path) -> int:
        """스테이징 결과 검증

        Returns:
            int: 파일 크기

        Raises:
            EmptyArtifactException: 파일이 없거나 min_bytes 이하
        """
        try:
            size = path.stat().st_size
        except OSError:
            size = 0
        if size <= self.min_bytes:
            raise EmptyArtifactException(str(path), size, self.min_bytes)
        return size

    def promote(self, staging: Path, resource_id: str) -> CachedArtifact:
        """검증 후 최종 경로로 원자적 이동

        Raises:
            EmptyArtifactException: 검증 실패 (스테이징 파일은 삭제됨)
        """
        try:
            size = self.validate(staging)
        except EmptyArtifactException:
            self._unlink(staging)
            raise
        final = self.artifact_path(resource_id)
        final.parent.mkdir(parents=True, exist_ok=True)
        os.replace(staging, final)
        logger.debug(f"[MediaCache] Promoted {staging.name} -> {final.name} ({size} bytes)")
        return CachedArtifact(resource_id=resource_id, path=final, size=size)

    def discard_staging(self, resource_id: str, strategy: str, token: str = "") -> None:
        """전략이 남긴 부분 파일 정리 (yt-dlp 임시 파일 포함)"""
        staging = self.staging_path(resource_id, strategy, token)
        self._unlink(staging)
        if not self.staging_dir.exists():
            return
        # yt-dlp 는 <name>.part, <name>.f137.mp4 같은 부산물을 남김
        prefix = staging.name.rsplit(".", 1)[0] + "."
        for leftover in self.staging_dir.glob(f"{prefix}*"):
            self._unlink(leftover)

    def purge_expired(self, max_age_s: float, now: Optional[float] = None) -> int:
        """오래된 결과/스테이징 파일 삭제

        Returns:
            int: 삭제한 파일 수
        """
        now = time.time() if now is None else now
        removed = 0
        for directory in (self.media_dir, self.staging_dir):
            if not directory.exists():
                continue
            for path in directory.iterdir():
                if not path.is_file():
                    continue
                try:
                    age = now - path.stat().st_mtime
                except OSError:
                    continue
                if age > max_age_s and self._unlink(path):
                    removed += 1
        if removed:
            logger.info(f"[MediaCache] Janitor removed {removed} expired files")
        return removed

    @staticmethod
    def _unlink(path: Path) -> bool:
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"[MediaCache] Failed to delete {path.name}: {type(e).__name__}: {e}")
            return False
