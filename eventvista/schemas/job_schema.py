"""검색 잡/응답 Pydantic 스키마"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from .event_schema import CamelModel


class SearchDatabaseResponse(CamelModel):
    """DB에서 바로 찾은 검색 결과"""

    success: bool = True
    source: Literal["database"] = "database"
    events: List[Dict[str, Any]]
    total: int = Field(..., ge=0)


class SearchJobResponse(CamelModel):
    """스크래핑 잡이 생성된 경우의 응답 (클라이언트는 폴링 시작)"""

    success: bool = True
    job_id: str
    status: Literal["running"] = "running"
    message: str = "Scraping job created and queued"


class JobStatusResponse(CamelModel):
    """잡 상태 조회 응답"""

    success: bool
    status: str = Field(..., description="running | completed | failed")
    job_id: str
    events: Optional[List[Dict[str, Any]]] = None
    total: Optional[int] = None
    events_scraped: Optional[int] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class JobOut(CamelModel):
    """잡 레코드 요약"""

    id: str
    platform: str
    status: str
    query: Optional[str] = None
    city: Optional[str] = None
    platforms: List[str] = Field(default_factory=list)
    events_scraped: int
    attempts: int
    error_message: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class JobListResponse(CamelModel):
    """잡 목록 응답"""

    jobs: List[JobOut]


class ErrorResponse(CamelModel):
    """오류 응답 (내부 상세는 포함하지 않음)"""

    success: bool = False
    error: str
    error_code: Optional[str] = None


class RateLimitErrorResponse(CamelModel):
    """429 응답 본문"""

    error: str = "Rate limit exceeded"
    message: str
    retry_after: int = Field(..., ge=0)


class ResetRateLimitRequest(CamelModel):
    """개발용 레이트 리밋 초기화 요청"""

    identifier: str = Field(..., min_length=1, max_length=255)
    limiter: Literal["api", "search", "all"] = "all"


class HealthResponse(CamelModel):
    """헬스 체크 응답"""

    status: str
    timestamp: datetime
    version: str
    redis: bool
    database: bool
