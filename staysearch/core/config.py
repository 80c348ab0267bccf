"""설정 관리 - 환경 변수 로드 및 검증"""
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # 실행 모드 (playwright | browserbase | remote | dual)
    default_mode: str = "playwright"
    enable_fallback: bool = True

    # 랭킹/후처리
    max_results: int = 10
    high_price_count: int = 5
    mid_price_count: int = 5
    budget_relax_percent: int = 20

    # 상세 수집/요약 동시성 (업스트림 봇 차단 회피용으로 작게 유지)
    detail_concurrency: int = 3
    summary_concurrency: int = 3
    detail_retry_attempts: int = 2
    detail_retry_delay_s: float = 1.0

    # 검색 재시도 (고정 간격, 증가 없음)
    search_retry_attempts: int = 2
    search_retry_delay_s: float = 1.0

    # 백엔드 타임아웃 (평가기의 speed 기준값으로도 사용)
    backend_timeout_ms: int = 30000

    # 파이프라인 전체 하드 캡
    pipeline_timeout_s: float = 120.0

    # 백엔드 1회 실행(connect → search → enrich) 상한, 폴백 시작에 필요한 최소 잔여 시간
    backend_run_timeout_s: float = 60.0
    fallback_min_remaining_s: float = 10.0

    # 스트리밍 채널 크기 (가득 차면 writer가 대기)
    stream_queue_size: int = 64

    # Rate limit (클라이언트별 슬라이딩 윈도우)
    rate_limit_requests: int = 10
    rate_limit_window_s: float = 60.0

    # 로컬 브라우저 (Playwright)
    browser_headless: bool = True
    browser_type: str = "chromium"
    browser_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    browser_locale: str = "en-US"

    # 클라우드 브라우저 (Browserbase)
    browserbase_api_key: Optional[str] = None
    browserbase_project_id: Optional[str] = None
    browserbase_api_url: str = "https://api.browserbase.com/v1"

    # 원격 Chromium (CDP)
    remote_cdp_url: Optional[str] = None

    # 리뷰 요약 LLM (OpenAI 호환)
    llm_api_key: Optional[str] = None
    llm_base_url: str = "https://api.openai.com/v1"
    llm_model: str = "gpt-4o-mini"
    llm_timeout_s: float = 20.0
    summary_max_reviews: int = 15

    # API
    api_title: str = "Stay Search Service"
    api_version: str = "1.0.0"
    api_description: str = "여러 브라우저 백엔드로 숙소를 검색하고 결과를 비교/랭킹합니다."

    # 로깅
    log_level: str = "INFO"

    @field_validator(
        "max_results",
        "detail_concurrency",
        "summary_concurrency",
        "search_retry_attempts",
        "detail_retry_attempts",
        "backend_timeout_ms",
        "rate_limit_requests",
        "stream_queue_size",
        "summary_max_reviews",
    )
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    @field_validator("high_price_count", "mid_price_count", "budget_relax_percent")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("value must be >= 0")
        return v

    @field_validator("pipeline_timeout_s", "backend_run_timeout_s", "rate_limit_window_s")
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("durations must be positive")
        return v

    @field_validator("search_retry_delay_s", "detail_retry_delay_s", "fallback_min_remaining_s")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("value must be >= 0")
        return v

    @field_validator("default_mode")
    @classmethod
    def validate_default_mode(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if v not in {"playwright", "browserbase", "remote", "dual"}:
            raise ValueError(f"Unsupported default_mode: {v}")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
