"""설정 관리 - 환경 변수 로드 및 검증"""
from typing import List

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # 데이터베이스
    database_url: str = ""

    # Redis (redis_disabled=True면 단일 프로세스용 in-memory 스토어로 대체)
    redis_url: str = ""
    redis_disabled: bool = False

    # 목록 조회 캐시 (짧게 유지: 새로 스크랩된 이벤트가 빨리 보여야 함)
    listing_cache_ttl: int = 30

    # 레이트 리밋 - 일반 조회용(높음) / 검색 시작용(낮음)
    api_rate_limit: int = 300
    api_rate_window: int = 900
    search_rate_limit: int = 100
    search_rate_window: int = 900

    # 검색 오케스트레이터
    search_db_limit: int = 50
    default_city: str = "San Francisco"
    default_platforms: List[str] = ["luma", "eventbrite"]

    # 잡 큐
    queue_name: str = "eventScraping"
    queue_max_attempts: int = 3
    queue_backoff_base_s: float = 2.0
    queue_initial_delay_s: float = 1.0
    queue_visibility_timeout_s: int = 600

    # 워커
    # NOTE: 스크래핑 대상 사이트 부담을 줄이기 위해 동시성은 작게 유지합니다.
    worker_concurrency: int = 2
    worker_poll_interval_s: float = 1.0
    worker_stop_on_first_results: bool = True
    worker_scrape_limit: int = 50
    # redis_disabled 모드에서 API 프로세스 안에 워커를 함께 띄움 (큐가 프로세스 로컬이므로)
    embedded_worker: bool = True

    # running 상태로 남은 잡을 failed로 승격시키는 기준 (큐 메시지 유실 대비)
    job_max_runtime_s: int = 1800
    sweep_interval_s: int = 60

    # 스크래퍼 백엔드: mock | disabled
    scraper_backend: str = "mock"

    # 클라이언트 폴링 간격
    poll_interval_s: float = 3.0

    # API
    api_title: str = "Tech Event Vista"
    api_version: str = "1.0.0"
    api_description: str = "Database-first 전략으로 테크 이벤트를 검색하고, 없으면 백그라운드 스크래핑 잡을 생성합니다."

    # 로깅
    log_level: str = "INFO"
    environment: str = "development"

    @field_validator(
        "listing_cache_ttl",
        "api_rate_limit",
        "api_rate_window",
        "search_rate_limit",
        "search_rate_window",
        "search_db_limit",
        "queue_max_attempts",
        "queue_visibility_timeout_s",
        "worker_concurrency",
        "worker_scrape_limit",
        "job_max_runtime_s",
        "sweep_interval_s",
    )
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    @field_validator("queue_backoff_base_s", "worker_poll_interval_s", "poll_interval_s")
    @classmethod
    def validate_positive_float(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("interval must be positive")
        return v

    @field_validator("queue_initial_delay_s")
    @classmethod
    def validate_initial_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("queue_initial_delay_s must be >= 0")
        return v

    @field_validator("default_platforms")
    @classmethod
    def validate_default_platforms(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("default_platforms must not be empty")
        return v

    @field_validator("scraper_backend")
    @classmethod
    def validate_scraper_backend(cls, v: str) -> str:
        if v not in ("mock", "disabled"):
            raise ValueError(f"Unsupported scraper_backend: {v}")
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v:
            raise ValueError("database_url must not be empty")
        return v

    @model_validator(mode="after")
    def validate_redis_url(self) -> "Settings":
        if not self.redis_disabled and not self.redis_url:
            raise ValueError("redis_url must not be empty unless redis_disabled is set")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
