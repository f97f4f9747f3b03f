"""Rate Limiter - 고정 윈도우 카운터 기반 요청 제한

카운터는 공유 스토어에 있으므로 여러 API 인스턴스가 같은 한도를 공유합니다.
스토어 장애 시에는 프로세스 로컬 카운터로 폴백합니다(인스턴스별 제한으로 약화).
"""
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from fastapi.responses import JSONResponse

from eventvista.core.exceptions import StoreConnectionException
from eventvista.core.logging import logger, sanitize_for_log
from eventvista.schemas.job_schema import RateLimitErrorResponse
from eventvista.services.impl.shared_store import InMemorySharedStore, SharedStore


@dataclass
class RateLimitResult:
    """레이트 리밋 판정 결과

    Attributes:
        allowed: 요청 허용 여부
        remaining: 윈도우 내 남은 요청 수 (0 이상)
        reset_time: 윈도우 리셋 시각 (epoch seconds)
        limit: 윈도우당 최대 요청 수
        window_seconds: 윈도우 길이
        now: 판정 시각 (epoch seconds)
    """

    allowed: bool
    remaining: int
    reset_time: float
    limit: int
    window_seconds: int
    now: float

    @property
    def retry_after(self) -> int:
        """재시도까지 대기 초 (1 ~ window)"""
        seconds = math.ceil(self.reset_time - self.now)
        return max(1, min(self.window_seconds, seconds))

    @property
    def reset_iso(self) -> str:
        return datetime.fromtimestamp(self.reset_time, tz=timezone.utc).isoformat()


class RateLimiter:
    """네임스페이스별 레이트 리미터 (api / search 등)"""

    def __init__(
        self,
        store: SharedStore,
        name: str,
        limit: int,
        window_seconds: int,
        fallback_store: Optional[SharedStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        if limit <= 0 or window_seconds <= 0:
            raise ValueError("limit and window_seconds must be positive")
        self.store = store
        self.name = name
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self.fallback_store = fallback_store or InMemorySharedStore(clock=clock)

    def key_for(self, identity: str) -> str:
        return f"rate_limit:{self.name}:{identity}:{self.window_seconds}"

    def _increment(self, key: str) -> tuple:
        try:
            return self.store.incr_window(key, self.window_seconds)
        except StoreConnectionException:
            logger.warning(f"[RATE_LIMIT] Shared store unavailable, using local counter for '{self.name}'")
            return self.fallback_store.incr_window(key, self.window_seconds)

    def check(self, identity: str) -> RateLimitResult:
        """요청 1건을 카운트하고 허용 여부 판정"""
        now = self._clock()
        count, ttl = self._increment(self.key_for(identity))
        if ttl <= 0:
            ttl = self.window_seconds

        result = RateLimitResult(
            allowed=count <= self.limit,
            remaining=max(0, self.limit - count),
            reset_time=now + ttl,
            limit=self.limit,
            window_seconds=self.window_seconds,
            now=now,
        )
        if not result.allowed:
            logger.warning(
                f"[RATE_LIMIT] {self.name} limit exceeded: client={sanitize_for_log(identity, 64)}, count={count}"
            )
        return result

    def reset(self, identity: str) -> bool:
        """카운터 초기화 (개발용)"""
        key = self.key_for(identity)
        removed = self.fallback_store.delete(key)
        try:
            removed = self.store.delete(key) or removed
        except StoreConnectionException:
            logger.warning(f"[RATE_LIMIT] Shared store unavailable, reset applied locally for '{self.name}'")
        logger.info(f"[RATE_LIMIT] {self.name} counter reset: client={sanitize_for_log(identity, 64)}")
        return removed


def rate_limit_headers(result: RateLimitResult) -> Dict[str, str]:
    """X-RateLimit-* 응답 헤더"""
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": result.reset_iso,
    }


def rate_limit_response(result: RateLimitResult) -> JSONResponse:
    """429 응답 생성"""
    retry_after = result.retry_after
    body = RateLimitErrorResponse(
        message=f"Too many requests. Try again in {retry_after} seconds.",
        retry_after=retry_after,
    )
    headers = rate_limit_headers(result)
    headers["Retry-After"] = str(retry_after)
    return JSONResponse(status_code=429, content=body.model_dump(by_alias=True), headers=headers)
