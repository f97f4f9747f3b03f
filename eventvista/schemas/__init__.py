"""Pydantic 스키마 패키지 - export only."""

from .event_schema import (
    CamelModel,
    EventOut,
    ListingResponse,
    PaginationMeta,
    ScrapedEvent,
    SearchFilters,
    SearchRequest,
)
from .job_schema import (
    ErrorResponse,
    HealthResponse,
    JobListResponse,
    JobOut,
    JobStatusResponse,
    RateLimitErrorResponse,
    ResetRateLimitRequest,
    SearchDatabaseResponse,
    SearchJobResponse,
)

__all__ = [
    "CamelModel",
    "EventOut",
    "ListingResponse",
    "PaginationMeta",
    "ScrapedEvent",
    "SearchFilters",
    "SearchRequest",
    "ErrorResponse",
    "HealthResponse",
    "JobListResponse",
    "JobOut",
    "JobStatusResponse",
    "RateLimitErrorResponse",
    "ResetRateLimitRequest",
    "SearchDatabaseResponse",
    "SearchJobResponse",
]
