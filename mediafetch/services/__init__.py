"""서비스 레이어 (캐시, 호출자 승인)."""

from .media_cache import CachedArtifact, MediaCache
from .rate_limiter import AdmissionDecision, AdmissionRateLimiter

__all__ = ["AdmissionDecision", "AdmissionRateLimiter", "CachedArtifact", "MediaCache"]
