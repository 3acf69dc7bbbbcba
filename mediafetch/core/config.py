"""설정 관리 - 환경 변수 로드 및 검증"""
from pydantic_settings import BaseSettings
from pydantic import field_validator


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # 캐시(다운로드 결과물)
    media_dir: str = "videos"
    media_extension: str = "mp4"
    min_artifact_bytes: int = 1024
    media_max_age_hours: float = 24.0
    janitor_interval_s: float = 3600.0
    public_url_prefix: str = "/videos"

    # 리소스 식별
    resource_id_pattern: str = r"^[A-Za-z0-9_-]{1,64}$"
    resource_url_template: str = "https://www.youtube.com/watch?v={resource_id}"
    platform_referer: str = "https://www.youtube.com/"

    # 추출 도구 (yt-dlp)
    extractor_binary: str = "yt-dlp"
    extractor_timeout_s: float = 300.0
    extractor_kill_grace_s: float = 5.0
    extractor_output_limit_bytes: int = 10 * 1024 * 1024
    extractor_format: str = "bestvideo[height<=480]+bestaudio/best[height<=480]"
    extractor_direct_format: str = "best[height<=360][ext=mp4]/best[ext=mp4]/best"
    extractor_max_filesize: str = "100M"
    extractor_socket_timeout_s: int = 30
    extractor_retries: int = 3
    extractor_sleep_interval_s: int = 1
    extractor_max_sleep_interval_s: int = 3

    # 전략 체인
    inter_strategy_delay_s: float = 1.0
    max_timeout_attempts: int = 2
    coalesce_inflight: bool = True
    browser_strategy_timeout_s: float = 90.0
    direct_download_timeout_s: float = 300.0
    direct_download_max_bytes: int = 100 * 1024 * 1024
    browser_max_download_candidates: int = 3

    # 프록시/아이덴티티 풀
    proxy_list: str = ""
    proxy_file: str = ""
    proxy_ban_seconds: float = 1800.0
    proxy_fail_threshold: int = 3
    proxy_check_url: str = "https://www.youtube.com/generate_204"
    proxy_check_timeout_s: float = 10.0
    proxy_check_on_startup: bool = True

    # 쿠키(자격 증명) 신선도
    cookies_path: str = "cookies.txt"
    cookie_domain: str = ".youtube.com"
    cookie_landing_url: str = "https://www.youtube.com/"
    cookie_ttl_s: float = 1800.0
    cookie_refresh_interval_s: float = 1500.0
    cookie_refresh_timeout_s: float = 60.0
    cookie_settle_s: float = 3.0
    cookie_background_refresh: bool = True

    # 브라우저 (Playwright)
    browser_max_sessions: int = 3
    browser_navigation_timeout_ms: int = 30000
    browser_ready_timeout_ms: int = 20000
    browser_launch_timeout_s: float = 25.0
    browser_user_agent: str = DEFAULT_USER_AGENT
    browser_locale: str = "en-US"
    browser_viewport_width: int = 1366
    browser_viewport_height: int = 768

    # HTTP (curl_cffi)
    http_impersonate: str = "chrome110"
    http_max_clients: int = 20

    # 호출자 승인(쿨다운)
    rate_limit_cooldown_s: float = 5.0
    rate_limit_max_keys: int = 10000

    # API
    api_title: str = "mediafetch"
    api_version: str = "1.0.0"
    api_description: str = "여러 수집 전략을 순서대로 시도해 미디어를 로컬에 캐시합니다."
    # 요청당 전체 체인 시도 상한
    api_acquire_timeout_s: float = 900.0

    # 로깅
    log_level: str = "INFO"

    @field_validator(
        "extractor_timeout_s",
        "extractor_kill_grace_s",
        "browser_strategy_timeout_s",
        "direct_download_timeout_s",
        "cookie_ttl_s",
        "cookie_refresh_interval_s",
        "cookie_refresh_timeout_s",
        "rate_limit_cooldown_s",
        "api_acquire_timeout_s",
        "janitor_interval_s",
        "proxy_check_timeout_s",
    )
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts and intervals must be positive")
        return v

    @field_validator("min_artifact_bytes", "extractor_output_limit_bytes", "direct_download_max_bytes")
    @classmethod
    def validate_positive_bytes(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("byte limits must be positive")
        return v

    @field_validator("inter_strategy_delay_s")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("inter_strategy_delay_s must be >= 0")
        return v

    @field_validator(
        "max_timeout_attempts", "browser_max_sessions", "proxy_fail_threshold", "browser_max_download_candidates"
    )
    @classmethod
    def validate_positive_count(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("counts must be positive")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
