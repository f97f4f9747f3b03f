"""Engine Layer - 검색 오케스트레이션

This module provides the core engine layer:
- SearchOrchestrator: Database-first 검색 및 잡 생성
- RateLimiter: 공유 스토어 기반 요청 제한
- ResultCache: 지문 기반 목록 캐시
- StatusPoller: 잡 상태 폴링 클라이언트
- SearchOutcome / ListingOutcome / JobStatusView: 표준 결과 포맷
"""

from .orchestrator import SearchOrchestrator, build_pagination, generate_job_id, serialize_event
from .poller import HttpStatusClient, PollerState, PollOutcome, StatusPoller, wait_for_job
from .rate_limiter import RateLimiter, RateLimitResult, rate_limit_headers, rate_limit_response
from .result import JobStatusView, ListingOutcome, OutcomeStatus, SearchOutcome
from .result_cache import ResultCache

__all__ = [
    "SearchOrchestrator",
    "build_pagination",
    "generate_job_id",
    "serialize_event",
    "HttpStatusClient",
    "PollerState",
    "PollOutcome",
    "StatusPoller",
    "wait_for_job",
    "RateLimiter",
    "RateLimitResult",
    "rate_limit_headers",
    "rate_limit_response",
    "JobStatusView",
    "ListingOutcome",
    "OutcomeStatus",
    "SearchOutcome",
    "ResultCache",
]
