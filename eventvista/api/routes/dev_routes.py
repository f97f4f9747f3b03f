"""개발용 엔드포인트 (production에서는 403)"""
from fastapi import APIRouter, Depends

from eventvista.api.dependencies import get_api_limiter, get_search_limiter
from eventvista.api.responses import error_response
from eventvista.core.config import settings
from eventvista.core.logging import logger, sanitize_for_log
from eventvista.engine import RateLimiter
from eventvista.schemas import ResetRateLimitRequest

router = APIRouter(prefix="/api/dev", tags=["dev"])


@router.post("/reset-rate-limit")
def reset_rate_limit(
    request: ResetRateLimitRequest,
    api_limiter: RateLimiter = Depends(get_api_limiter),
    search_limiter: RateLimiter = Depends(get_search_limiter),
):
    """클라이언트 식별자의 레이트 리밋 카운터 초기화"""
    if settings.is_production:
        logger.warning("[DEV] Rate limit reset rejected in production")
        return error_response(403, "Not available in production", "FORBIDDEN")

    identifier = request.identifier.strip()
    targets = {"api": [api_limiter], "search": [search_limiter], "all": [api_limiter, search_limiter]}
    for limiter in targets[request.limiter]:
        limiter.reset(identifier)

    logger.info(f"[DEV] Rate limit reset: client={sanitize_for_log(identifier, 64)}, limiter={request.limiter}")
    return {
        "success": True,
        "message": f"Rate limit reset for {identifier}",
        "identifier": identifier,
        "limiter": request.limiter,
    }
