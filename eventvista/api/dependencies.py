"""API 의존성 - 프로세스 단위 싱글톤과 요청 단위 오케스트레이터"""
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from eventvista.core.config import settings
from eventvista.core.database import get_db
from eventvista.core.security import resolve_client_identity
from eventvista.engine import RateLimiter, ResultCache, SearchOrchestrator
from eventvista.repositories import EventRepository, JobRepository
from eventvista.services import JobQueue, SharedStore, build_job_queue, build_shared_store

# 싱글톤 서비스
_shared_store: Optional[SharedStore] = None
_job_queue: Optional[JobQueue] = None
_api_limiter: Optional[RateLimiter] = None
_search_limiter: Optional[RateLimiter] = None


def get_shared_store() -> SharedStore:
    """SharedStore 싱글톤 (Redis 또는 in-memory)"""
    global _shared_store
    if _shared_store is None:
        _shared_store = build_shared_store(settings)
    return _shared_store


def get_job_queue() -> JobQueue:
    """JobQueue 싱글톤"""
    global _job_queue
    if _job_queue is None:
        _job_queue = build_job_queue(settings)
    return _job_queue


def get_api_limiter(store: SharedStore = Depends(get_shared_store)) -> RateLimiter:
    """일반 조회용 리미터 (300 / 15분)"""
    global _api_limiter
    if _api_limiter is None:
        _api_limiter = RateLimiter(store, "api", settings.api_rate_limit, settings.api_rate_window)
    return _api_limiter


def get_search_limiter(store: SharedStore = Depends(get_shared_store)) -> RateLimiter:
    """검색 시작용 리미터 (100 / 15분)"""
    global _search_limiter
    if _search_limiter is None:
        _search_limiter = RateLimiter(store, "search", settings.search_rate_limit, settings.search_rate_window)
    return _search_limiter


def get_result_cache(store: SharedStore = Depends(get_shared_store)) -> ResultCache:
    return ResultCache(store, namespace="events", default_ttl=settings.listing_cache_ttl)


def get_client_identity(request: Request) -> str:
    return resolve_client_identity(request.headers)


def get_orchestrator(
    db: Session = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
    cache: ResultCache = Depends(get_result_cache),
    search_limiter: RateLimiter = Depends(get_search_limiter),
    api_limiter: RateLimiter = Depends(get_api_limiter),
) -> SearchOrchestrator:
    """요청 단위 SearchOrchestrator (요청 DB 세션에 묶임)"""
    return SearchOrchestrator(
        events=EventRepository(db),
        jobs=JobRepository(db),
        queue=queue,
        cache=cache,
        search_limiter=search_limiter,
        listing_limiter=api_limiter,
        default_city=settings.default_city,
        default_platforms=settings.default_platforms,
        search_db_limit=settings.search_db_limit,
        listing_cache_ttl=settings.listing_cache_ttl,
    )


def reset_dependencies() -> None:
    """싱글톤 초기화 (테스트용)"""
    global _shared_store, _job_queue, _api_limiter, _search_limiter
    _shared_store = None
    _job_queue = None
    _api_limiter = None
    _search_limiter = None
