"""API 엔드포인트 패키지 - export only."""

from .dependencies import (
    get_api_limiter,
    get_job_queue,
    get_orchestrator,
    get_search_limiter,
    get_shared_store,
    reset_dependencies,
)
from .routes import dev_router, events_router, health_router, jobs_router

__all__ = [
    "dev_router",
    "events_router",
    "health_router",
    "jobs_router",
    "get_api_limiter",
    "get_job_queue",
    "get_orchestrator",
    "get_search_limiter",
    "get_shared_store",
    "reset_dependencies",
]
