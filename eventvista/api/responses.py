"""HTTP 응답 헬퍼 (camelCase 직렬화 + 레이트 리밋 헤더)"""
from typing import Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from eventvista.engine.rate_limiter import RateLimitResult, rate_limit_headers
from eventvista.schemas.job_schema import ErrorResponse


def json_response(
    body: BaseModel,
    rate_limit: Optional[RateLimitResult] = None,
    status_code: int = 200,
) -> JSONResponse:
    headers = rate_limit_headers(rate_limit) if rate_limit is not None else None
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )


def error_response(
    status_code: int,
    error: str,
    error_code: Optional[str] = None,
    rate_limit: Optional[RateLimitResult] = None,
) -> JSONResponse:
    return json_response(ErrorResponse(error=error, error_code=error_code), rate_limit, status_code)
