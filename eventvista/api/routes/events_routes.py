"""Event Routes - 검색 시작 / 잡 상태 / 목록 조회

HTTP Layer는 요청을 SearchOrchestrator에 위임하고 결과를 응답으로 변환만 합니다.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from eventvista.api.dependencies import get_client_identity, get_orchestrator
from eventvista.api.responses import error_response, json_response
from eventvista.core.exceptions import ValidationException
from eventvista.engine import (
    JobStatusView,
    ListingOutcome,
    OutcomeStatus,
    SearchOrchestrator,
    SearchOutcome,
    build_pagination,
    rate_limit_response,
)
from eventvista.schemas import (
    JobStatusResponse,
    ListingResponse,
    PaginationMeta,
    SearchDatabaseResponse,
    SearchFilters,
    SearchJobResponse,
    SearchRequest,
)

router = APIRouter(prefix="/api/events", tags=["events"])


def _search_response(outcome: SearchOutcome) -> JSONResponse:
    if outcome.status == OutcomeStatus.RATE_LIMITED:
        return rate_limit_response(outcome.rate_limit)

    if outcome.status == OutcomeStatus.DATABASE:
        body = SearchDatabaseResponse(events=outcome.events, total=outcome.total)
        return json_response(body, outcome.rate_limit)

    if outcome.status == OutcomeStatus.JOB_CREATED:
        return json_response(SearchJobResponse(job_id=outcome.job_id), outcome.rate_limit)

    return error_response(500, outcome.error_message, outcome.error_code, outcome.rate_limit)


def _listing_response(outcome: ListingOutcome) -> JSONResponse:
    if outcome.status == OutcomeStatus.RATE_LIMITED:
        return rate_limit_response(outcome.rate_limit)
    body = ListingResponse(events=outcome.events, pagination=PaginationMeta(**outcome.pagination))
    return json_response(body, outcome.rate_limit)


@router.post("/search")
def start_search(
    request: SearchRequest,
    identity: str = Depends(get_client_identity),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
):
    """검색 시작 API

    Flow:
        1. 검색 한도 확인
        2. DB에서 바로 검색 (결과가 있으면 source="database"로 즉시 반환)
        3. 없으면 스크래핑 잡 생성 후 jobId 반환 (클라이언트는 상태 폴링)
    """
    outcome = orchestrator.search(request.query, request, identity)
    return _search_response(outcome)


@router.get("/search/status")
def search_status(
    job_id: Optional[str] = Query(None, alias="jobId", max_length=64),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
):
    """잡 상태 조회 (폴링 엔드포인트)"""
    if not job_id or not job_id.strip():
        raise ValidationException("jobId", "jobId is required")

    view: JobStatusView = orchestrator.job_status(job_id.strip())
    body = JobStatusResponse(
        success=view.status != "failed",
        status=view.status,
        job_id=view.job_id,
        events=view.events,
        total=view.total,
        events_scraped=view.events_scraped if view.is_terminal else None,
        error=view.error,
        started_at=view.started_at,
        completed_at=view.completed_at,
    )
    return json_response(body)


@router.get("")
def list_events(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    city: Optional[str] = Query(None, max_length=100),
    event_type: Optional[str] = Query(None, alias="eventType", max_length=50),
    price: Optional[str] = Query(None, max_length=10),
    date: Optional[str] = Query(None, max_length=20),
    platforms: Optional[str] = Query(None, max_length=200),
    query: Optional[str] = Query(None, max_length=500),
    identity: str = Depends(get_client_identity),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
):
    """이벤트 목록 (query가 있으면 검색으로 동작)"""
    filters = SearchFilters(city=city, event_type=event_type, price=price, date=date, platforms=platforms)
    outcome = orchestrator.browse(query, filters, page, limit, identity)

    if isinstance(outcome, ListingOutcome):
        return _listing_response(outcome)

    if outcome.status == OutcomeStatus.DATABASE:
        body = ListingResponse(
            events=outcome.events,
            pagination=PaginationMeta(**build_pagination(1, limit, outcome.total)),
            source="database",
        )
        return json_response(body, outcome.rate_limit)
    return _search_response(outcome)
