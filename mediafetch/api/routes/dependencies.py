"""라우트 공용 의존성 - 프로세스 단위 싱글톤

엔진 내부에는 전역 상태를 두지 않고, API 레이어가 인스턴스를 소유해 주입합니다.
"""

from typing import Optional

from mediafetch.core.config import settings
from mediafetch.credentials.manager import CredentialManager
from mediafetch.engine.orchestrator import AcquisitionOrchestrator
from mediafetch.engine.strategy import RetryPolicy
from mediafetch.identity import IdentityPool
from mediafetch.services.media_cache import MediaCache
from mediafetch.services.rate_limiter import AdmissionRateLimiter

# 싱글톤 서비스
_media_cache: Optional[MediaCache] = None
_identity_pool: Optional[IdentityPool] = None
_credential_manager: Optional[CredentialManager] = None
_rate_limiter: Optional[AdmissionRateLimiter] = None
_orchestrator: Optional[AcquisitionOrchestrator] = None


def get_media_cache() -> MediaCache:
    """MediaCache 싱글톤"""
    global _media_cache
    if _media_cache is None:
        _media_cache = MediaCache.from_settings()
    return _media_cache


def get_identity_pool() -> IdentityPool:
    """IdentityPool 싱글톤"""
    global _identity_pool
    if _identity_pool is None:
        _identity_pool = IdentityPool.from_settings()
    return _identity_pool


def get_credential_manager() -> CredentialManager:
    """CredentialManager 싱글톤"""
    global _credential_manager
    if _credential_manager is None:
        _credential_manager = CredentialManager.from_settings()
    return _credential_manager


def get_rate_limiter() -> AdmissionRateLimiter:
    """AdmissionRateLimiter 싱글톤"""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = AdmissionRateLimiter(
            cooldown_s=settings.rate_limit_cooldown_s,
            max_tracked_keys=settings.rate_limit_max_keys,
        )
    return _rate_limiter


def get_orchestrator() -> AcquisitionOrchestrator:
    """AcquisitionOrchestrator 싱글톤

    Engine Layer의 진입점을 제공합니다.
    """
    global _orchestrator
    if _orchestrator is None:
        from mediafetch.fetchers.chain import build_default_chain

        _orchestrator = AcquisitionOrchestrator(
            build_default_chain(),
            get_media_cache(),
            identity_pool=get_identity_pool(),
            credentials=get_credential_manager(),
            policy=RetryPolicy(max_timeout_attempts=settings.max_timeout_attempts),
            resource_url_template=settings.resource_url_template,
            inter_strategy_delay_s=settings.inter_strategy_delay_s,
            coalesce_inflight=settings.coalesce_inflight,
        )
    return _orchestrator
