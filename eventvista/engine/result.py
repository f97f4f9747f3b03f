"""Search Outcome - 오케스트레이터 결과 표준 포맷

API 레이어는 이 결과를 HTTP 응답으로 변환합니다.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from eventvista.engine.rate_limiter import RateLimitResult


class OutcomeStatus(str, Enum):
    """오케스트레이터 결과 상태"""

    DATABASE = "database"  # DB에서 결과를 바로 찾음
    JOB_CREATED = "job_created"  # 스크래핑 잡 생성됨 (폴링 필요)
    LISTING = "listing"  # 목록 페이지
    RATE_LIMITED = "rate_limited"  # 요청 한도 초과
    ERROR = "error"  # 잡 생성 실패 등


@dataclass
class SearchOutcome:
    """검색 시작 결과

    Attributes:
        status: 결과 상태
        events: 직렬화된 이벤트 목록 (DATABASE)
        total: 조건에 맞는 전체 이벤트 수 (DATABASE)
        job_id: 생성된 잡 ID (JOB_CREATED)
        error_message: 클라이언트에 보여줄 오류 요약 (ERROR)
        error_code: 오류 코드 (ERROR)
        rate_limit: 레이트 리밋 판정 (헤더용)
    """

    status: OutcomeStatus
    events: List[Dict[str, Any]] = field(default_factory=list)
    total: int = 0
    job_id: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    rate_limit: Optional[RateLimitResult] = None

    @property
    def is_success(self) -> bool:
        return self.status in (OutcomeStatus.DATABASE, OutcomeStatus.JOB_CREATED)

    @classmethod
    def from_database(cls, events: List[Dict[str, Any]], total: int,
                      rate_limit: Optional[RateLimitResult] = None) -> "SearchOutcome":
        return cls(status=OutcomeStatus.DATABASE, events=events, total=total, rate_limit=rate_limit)

    @classmethod
    def from_job(cls, job_id: str, rate_limit: Optional[RateLimitResult] = None) -> "SearchOutcome":
        return cls(status=OutcomeStatus.JOB_CREATED, job_id=job_id, rate_limit=rate_limit)

    @classmethod
    def rate_limited(cls, rate_limit: RateLimitResult) -> "SearchOutcome":
        return cls(status=OutcomeStatus.RATE_LIMITED, rate_limit=rate_limit)

    @classmethod
    def error(cls, message: str, error_code: str, job_id: Optional[str] = None,
              rate_limit: Optional[RateLimitResult] = None) -> "SearchOutcome":
        return cls(
            status=OutcomeStatus.ERROR,
            job_id=job_id,
            error_message=message,
            error_code=error_code,
            rate_limit=rate_limit,
        )


@dataclass
class ListingOutcome:
    """목록 조회 결과"""

    status: OutcomeStatus
    events: List[Dict[str, Any]] = field(default_factory=list)
    pagination: Dict[str, int] = field(default_factory=dict)
    cached: bool = False
    rate_limit: Optional[RateLimitResult] = None

    @classmethod
    def from_page(cls, events: List[Dict[str, Any]], pagination: Dict[str, int], cached: bool = False,
                  rate_limit: Optional[RateLimitResult] = None) -> "ListingOutcome":
        return cls(
            status=OutcomeStatus.LISTING,
            events=events,
            pagination=pagination,
            cached=cached,
            rate_limit=rate_limit,
        )

    @classmethod
    def rate_limited(cls, rate_limit: RateLimitResult) -> "ListingOutcome":
        return cls(status=OutcomeStatus.RATE_LIMITED, rate_limit=rate_limit)


@dataclass
class JobStatusView:
    """폴링 응답용 잡 상태"""

    job_id: str
    status: str
    events: Optional[List[Dict[str, Any]]] = None
    total: Optional[int] = None
    events_scraped: Optional[int] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")
