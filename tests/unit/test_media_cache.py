"""MediaCache 테스트 (조회 / 검증 / 승격 / 정리)"""

import os
import time
from pathlib import Path

import pytest

from mediafetch.core.exceptions import EmptyArtifactException, InvalidResourceIdException
from mediafetch.services import MediaCache

VIDEO_ID = "dQw4w9WgXcQ"


def test_paths(media_cache: MediaCache) -> None:
    assert media_cache.artifact_path(VIDEO_ID).name == f"{VIDEO_ID}.mp4"
    staging = media_cache.staging_path(VIDEO_ID, "ytdlp-ios")
    assert staging.parent == media_cache.staging_dir
    assert staging.name == f"{VIDEO_ID}.ytdlp-ios.mp4"
    assert media_cache.public_url(VIDEO_ID) == f"/videos/{VIDEO_ID}.mp4"


def test_path_traversal_rejected(media_cache: MediaCache) -> None:
    with pytest.raises(InvalidResourceIdException):
        media_cache.artifact_path("../secret")


def test_lookup_missing(media_cache: MediaCache) -> None:
    assert media_cache.lookup(VIDEO_ID) is None


def test_lookup_removes_undersized(media_cache: MediaCache) -> None:
    path = media_cache.artifact_path(VIDEO_ID)
    path.write_bytes(b"\0" * 1024)

    assert media_cache.lookup(VIDEO_ID) is None
    assert not path.exists()


def test_promote_moves_valid_file(media_cache: MediaCache) -> None:
    staging = media_cache.staging_path(VIDEO_ID, "browser-extract")
    staging.write_bytes(b"\0" * 4096)

    artifact = media_cache.promote(staging, VIDEO_ID)

    assert artifact.size == 4096
    assert artifact.path == media_cache.artifact_path(VIDEO_ID)
    assert not staging.exists()
    assert media_cache.lookup(VIDEO_ID).size == 4096


@pytest.mark.parametrize("size", [None, 0, 1023, 1024])
def test_promote_rejects_missing_or_small(media_cache: MediaCache, size) -> None:
    staging = media_cache.staging_path(VIDEO_ID, "ytdlp-ios")
    if size is not None:
        staging.write_bytes(b"\0" * size)

    with pytest.raises(EmptyArtifactException) as exc_info:
        media_cache.promote(staging, VIDEO_ID)

    assert exc_info.value.details["min_bytes"] == 1024
    assert not staging.exists()
    assert not media_cache.artifact_path(VIDEO_ID).exists()


def test_discard_staging_removes_tool_leftovers(media_cache: MediaCache) -> None:
    staging = media_cache.staging_path(VIDEO_ID, "ytdlp-ios")
    staging.write_bytes(b"x")
    (media_cache.staging_dir / f"{VIDEO_ID}.ytdlp-ios.mp4.part").write_bytes(b"x")
    (media_cache.staging_dir / f"{VIDEO_ID}.ytdlp-ios.f137.mp4").write_bytes(b"x")
    other = media_cache.staging_dir / f"{VIDEO_ID}.ytdlp-android.mp4"
    other.write_bytes(b"x")

    media_cache.discard_staging(VIDEO_ID, "ytdlp-ios")

    assert sorted(p.name for p in media_cache.staging_dir.iterdir()) == [other.name]


def test_discard_staging_keeps_other_runs(media_cache: MediaCache) -> None:
    mine = media_cache.staging_path(VIDEO_ID, "ytdlp-ios", "aaaa1111")
    theirs = media_cache.staging_path(VIDEO_ID, "ytdlp-ios", "bbbb2222")
    assert mine.name == f"{VIDEO_ID}.ytdlp-ios.aaaa1111.mp4"
    mine.write_bytes(b"x")
    (media_cache.staging_dir / f"{mine.name}.part").write_bytes(b"x")
    theirs.write_bytes(b"x")

    media_cache.discard_staging(VIDEO_ID, "ytdlp-ios", "aaaa1111")

    assert sorted(p.name for p in media_cache.staging_dir.iterdir()) == [theirs.name]


def test_purge_expired(media_cache: MediaCache) -> None:
    old = media_cache.artifact_path(VIDEO_ID)
    old.write_bytes(b"\0" * 2048)
    fresh = media_cache.artifact_path("abcdefghijk")
    fresh.write_bytes(b"\0" * 2048)
    stale_staging = media_cache.staging_path("abcdefghijk", "direct-stream")
    stale_staging.write_bytes(b"x")

    now = time.time()
    os.utime(old, (now - 7200, now - 7200))
    os.utime(stale_staging, (now - 7200, now - 7200))

    removed = media_cache.purge_expired(max_age_s=3600, now=now)

    assert removed == 2
    assert not old.exists()
    assert fresh.exists()
    assert not stale_staging.exists()


def test_from_settings(tmp_path: Path, monkeypatch) -> None:
    from mediafetch.core.config import settings

    monkeypatch.setattr(settings, "media_dir", str(tmp_path / "media"))
    cache = MediaCache.from_settings()
    cache.ensure_dirs()

    assert cache.staging_dir.is_dir()
    assert cache.min_bytes == settings.min_artifact_bytes
