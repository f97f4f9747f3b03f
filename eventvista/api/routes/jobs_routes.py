"""스크래핑 잡 조회 엔드포인트"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from eventvista.api.dependencies import get_api_limiter, get_client_identity
from eventvista.api.responses import json_response
from eventvista.core.database import get_db
from eventvista.engine import RateLimiter, rate_limit_response
from eventvista.repositories import JobRepository
from eventvista.schemas import JobListResponse, JobOut

router = APIRouter(prefix="/api/scraping", tags=["scraping"])


@router.get("/jobs")
def list_jobs(
    status: Optional[str] = Query(None, pattern="^(running|completed|failed)$"),
    platform: Optional[str] = Query(None, max_length=50),
    limit: int = Query(10, ge=1, le=100),
    identity: str = Depends(get_client_identity),
    limiter: RateLimiter = Depends(get_api_limiter),
    db: Session = Depends(get_db),
):
    """최근 잡 목록 (생성 시각 역순)"""
    rate_limit = limiter.check(identity)
    if not rate_limit.allowed:
        return rate_limit_response(rate_limit)

    jobs = JobRepository(db).list_jobs(status=status, platform=platform, limit=limit)
    body = JobListResponse(jobs=[JobOut.model_validate(job) for job in jobs])
    return json_response(body, rate_limit)
