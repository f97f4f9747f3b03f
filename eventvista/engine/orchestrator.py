"""Search Orchestrator - Database-first 검색 및 스크래핑 잡 생성

Coordinates the search pipeline:
1. Admission (search rate limiter)
2. Database-first lookup
3. 결과가 없으면 잡 레코드 생성 → 큐 발행 (발행 실패 시 보상: 잡을 failed로)

목록 조회(검색어 없음)는 캐시 → DB 순서이며 스크래핑을 절대 트리거하지 않습니다.
"""
import math
import secrets
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from eventvista.core.exceptions import (
    DatabaseConnectionException,
    DatabaseException,
    QueuePublishException,
)
from eventvista.core.logging import logger, sanitize_for_log
from eventvista.core.security import SecurityValidator
from eventvista.repositories.impl.event_repository import EventRepository
from eventvista.repositories.impl.job_repository import JobRepository
from eventvista.repositories.models import Event, JobStatus
from eventvista.schemas.event_schema import EventOut, SearchFilters
from eventvista.services.impl.job_queue import JobQueue, QueueMessage

from .rate_limiter import RateLimiter
from .result import JobStatusView, ListingOutcome, SearchOutcome
from .result_cache import ResultCache

JOB_CREATE_FAILED = "Failed to create scraping job"
QUEUE_FAILED_MESSAGE = "Failed to queue job"


def serialize_event(event: Event) -> Dict[str, Any]:
    """ORM 이벤트 → camelCase JSON dict"""
    return EventOut.model_validate(event).model_dump(mode="json", by_alias=True)


def build_pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def generate_job_id(clock: Callable[[], float] = time.time) -> str:
    """search-<epoch ms>-<8 hex>"""
    return f"search-{int(clock() * 1000)}-{secrets.token_hex(4)}"


class SearchOrchestrator:
    """검색 오케스트레이터

    요청 단위로 생성됩니다(리포지토리가 요청 세션에 묶여 있음).
    스토어/큐/리미터는 프로세스 단위 싱글톤을 주입받습니다.
    """

    def __init__(
        self,
        events: EventRepository,
        jobs: JobRepository,
        queue: JobQueue,
        cache: ResultCache,
        search_limiter: RateLimiter,
        listing_limiter: RateLimiter,
        default_city: str = "San Francisco",
        default_platforms: Sequence[str] = ("luma", "eventbrite"),
        search_db_limit: int = 50,
        listing_cache_ttl: int = 30,
        job_id_factory: Callable[[], str] = generate_job_id,
    ):
        if not default_platforms:
            raise ValueError("default_platforms must not be empty")

        self.events = events
        self.jobs = jobs
        self.queue = queue
        self.cache = cache
        self.search_limiter = search_limiter
        self.listing_limiter = listing_limiter
        self.default_city = default_city
        self.default_platforms = list(default_platforms)
        self.search_db_limit = search_db_limit
        self.listing_cache_ttl = listing_cache_ttl
        self.job_id_factory = job_id_factory

    def search(
        self,
        query: Optional[str],
        filters: SearchFilters,
        identity: str,
        limit: Optional[int] = None,
    ) -> SearchOutcome:
        """검색 시작

        Raises:
            InvalidQueryException: 비어 있거나 허용되지 않는 검색어 (한도 소모 없음)
        """
        cleaned = SecurityValidator.validate_query(query)

        # 1. Admission
        rate_limit = self.search_limiter.check(identity)
        if not rate_limit.allowed:
            return SearchOutcome.rate_limited(rate_limit)

        logger.info(f"[SEARCH] Search started: query='{sanitize_for_log(cleaned)}'")

        # 2-3. Database-first
        events, total = self._lookup(cleaned, filters, limit or self.search_db_limit)
        if events:
            logger.info(f"[SEARCH] Served from database: {len(events)}/{total} events")
            return SearchOutcome.from_database(
                [serialize_event(e) for e in events], total, rate_limit=rate_limit
            )

        # 4. 잡 생성
        job_id = self.job_id_factory()
        city = filters.city or self.default_city
        platforms = list(filters.platforms or self.default_platforms)

        try:
            self.jobs.create_running(job_id, cleaned, city, platforms)
        except DatabaseException as e:
            # 6. 레코드 생성 실패 → 발행하지 않음
            logger.error(f"[SEARCH] Failed to create job record {job_id}: {e.error_code}")
            return SearchOutcome.error(JOB_CREATE_FAILED, e.error_code, rate_limit=rate_limit)

        message = QueueMessage(job_id=job_id, query=cleaned, platforms=tuple(platforms), city=city)
        try:
            self.queue.publish(message)
        except QueuePublishException as e:
            # 5. 보상 트랜잭션: 고아 running 레코드를 남기지 않음
            logger.error(f"[SEARCH] Failed to queue job {job_id}: {e.error_code}")
            self._compensate(job_id)
            return SearchOutcome.error(JOB_CREATE_FAILED, e.error_code, job_id=job_id, rate_limit=rate_limit)

        # 7. 성공
        logger.info(f"[SEARCH] Job {job_id} queued: city='{city}', platforms={platforms}")
        return SearchOutcome.from_job(job_id, rate_limit=rate_limit)

    def _lookup(self, query: str, filters: SearchFilters, limit: int):
        try:
            return self.events.search(query, filters, limit)
        except DatabaseConnectionException as e:
            logger.warning(f"[SEARCH] Database lookup unavailable, falling back to job: {e.error_code}")
            return [], 0

    def _compensate(self, job_id: str) -> None:
        try:
            self.jobs.mark_failed(job_id, QUEUE_FAILED_MESSAGE)
        except DatabaseException as e:
            # 스위퍼가 job_max_runtime_s 이후 failed로 승격
            logger.error(f"[SEARCH] Compensation failed for job {job_id}: {e.error_code}")

    def list_events(
        self,
        filters: SearchFilters,
        page: int,
        limit: int,
        identity: str,
    ) -> ListingOutcome:
        """필터 목록 조회 (캐시 우선, 스크래핑 없음)"""
        rate_limit = self.listing_limiter.check(identity)
        if not rate_limit.allowed:
            return ListingOutcome.rate_limited(rate_limit)
        return self._list_page(filters, page, limit, rate_limit)

    def browse(
        self,
        query: Optional[str],
        filters: SearchFilters,
        page: int,
        limit: int,
        identity: str,
    ) -> Union[SearchOutcome, ListingOutcome]:
        """GET 목록 엔드포인트: 검색어가 있으면 검색으로 위임

        일반 한도(listing)를 먼저 통과해야 하고, 검색은 검색 한도를 추가로 소모합니다.
        """
        rate_limit = self.listing_limiter.check(identity)
        if not rate_limit.allowed:
            return ListingOutcome.rate_limited(rate_limit)

        if query and query.strip():
            return self.search(query, filters, identity, limit=limit)
        return self._list_page(filters, page, limit, rate_limit)

    def _list_page(self, filters: SearchFilters, page: int, limit: int, rate_limit) -> ListingOutcome:
        params = dict(filters.fingerprint_params())
        params.update({"page": page, "limit": limit})
        cache_key = self.cache.key_for(params)

        cached = self.cache.get(cache_key)
        if cached is not None:
            return ListingOutcome.from_page(
                cached["events"], cached["pagination"], cached=True, rate_limit=rate_limit
            )

        try:
            events, total = self.events.list_page(filters, offset=(page - 1) * limit, limit=limit)
        except DatabaseConnectionException as e:
            # 연결 장애는 빈 페이지로 강등 (캐시하지 않음)
            logger.warning(f"[EVENTS] Listing degraded to empty page: {e.error_code}")
            return ListingOutcome.from_page([], build_pagination(page, limit, 0), rate_limit=rate_limit)

        payload = {
            "events": [serialize_event(e) for e in events],
            "pagination": build_pagination(page, limit, total),
        }
        self.cache.set(cache_key, payload, self.listing_cache_ttl)
        return ListingOutcome.from_page(payload["events"], payload["pagination"], rate_limit=rate_limit)

    def job_status(self, job_id: str) -> JobStatusView:
        """폴링용 잡 상태

        Raises:
            JobNotFoundException: 존재하지 않는 잡
        """
        job = self.jobs.get_or_raise(job_id)
        view = JobStatusView(
            job_id=job.id,
            status=job.status,
            events_scraped=job.events_scraped,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )

        if job.job_status == JobStatus.COMPLETED:
            events: List[Event] = self.events.find_for_job(job)
            view.events = [serialize_event(e) for e in events]
            view.total = len(view.events)
        elif job.job_status == JobStatus.FAILED:
            view.error = job.error_message

        return view
