"""Status Poller - 잡 상태 폴링 클라이언트

상태 머신: idle → polling → completed | failed | cancelled

- 시작 직후 한 번 즉시 조회한 뒤 interval 간격으로 반복합니다.
- 종료 결과(completed/failed)는 정확히 한 번만 반환됩니다.
- cancel()은 단일 asyncio.Event 토큰을 세팅하며, 이후 조회는 일어나지 않습니다.
"""
import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from curl_cffi.requests import AsyncSession

from eventvista.core.exceptions import JobNotFoundException, StatusPollException
from eventvista.core.logging import logger

StatusFetcher = Callable[[str], Awaitable[Dict[str, Any]]]


class PollerState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class PollOutcome:
    """폴링 종료 결과"""

    job_id: str
    status: str
    events: List[Dict[str, Any]] = field(default_factory=list)
    total: int = 0
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status == PollerState.COMPLETED.value

    @classmethod
    def completed(cls, job_id: str, payload: Dict[str, Any]) -> "PollOutcome":
        events = payload.get("events") or []
        total = payload.get("total")
        return cls(
            job_id=job_id,
            status=PollerState.COMPLETED.value,
            events=list(events),
            total=int(total) if total is not None else len(events),
        )

    @classmethod
    def failed(cls, job_id: str, error: Optional[str]) -> "PollOutcome":
        return cls(job_id=job_id, status=PollerState.FAILED.value, error=error or "Job failed")


class StatusPoller:
    """잡 하나를 종료 상태까지 폴링 (인스턴스당 1회 사용)"""

    def __init__(
        self,
        fetch_status: StatusFetcher,
        interval: float = 3.0,
        timeout: Optional[float] = None,
        max_consecutive_errors: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        if max_consecutive_errors <= 0:
            raise ValueError("max_consecutive_errors must be positive")
        self.fetch_status = fetch_status
        self.interval = interval
        self.timeout = timeout
        self.max_consecutive_errors = max_consecutive_errors
        self._clock = clock
        self._cancel = asyncio.Event()
        self.state = PollerState.IDLE
        self.queries = 0

    @property
    def is_cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """폴링 중단 (종료 상태 이후 호출은 무시)"""
        if self.state in (PollerState.COMPLETED, PollerState.FAILED):
            return
        self._cancel.set()
        self.state = PollerState.CANCELLED

    def _finish(self, outcome: PollOutcome) -> PollOutcome:
        self.state = PollerState(outcome.status)
        logger.info(f"[POLLER] Job {outcome.job_id} finished: {outcome.status}")
        return outcome

    async def _sleep(self) -> None:
        try:
            await asyncio.wait_for(self._cancel.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            pass

    async def poll(self, job_id: str) -> Optional[PollOutcome]:
        """종료 상태까지 폴링

        Returns:
            PollOutcome (completed/failed) 또는 취소 시 None

        Raises:
            RuntimeError: 이미 사용된 poller
        """
        if self.state == PollerState.CANCELLED:
            return None
        if self.state != PollerState.IDLE:
            raise RuntimeError("StatusPoller can only poll once")

        self.state = PollerState.POLLING
        started = self._clock()
        errors = 0

        try:
            while not self.is_cancelled:
                payload: Optional[Dict[str, Any]] = None
                self.queries += 1
                try:
                    payload = await self.fetch_status(job_id)
                    errors = 0
                except JobNotFoundException:
                    if self.is_cancelled:
                        return None
                    return self._finish(PollOutcome.failed(job_id, "Job not found"))
                except StatusPollException as e:
                    errors += 1
                    logger.warning(f"[POLLER] Status query failed ({errors}/{self.max_consecutive_errors}): {e.error_code}")
                    if errors >= self.max_consecutive_errors and not self.is_cancelled:
                        return self._finish(PollOutcome.failed(job_id, "Unable to reach status endpoint"))

                # 취소 후 도착한 응답은 버림
                if self.is_cancelled:
                    return None

                status = (payload or {}).get("status")
                if status == PollerState.COMPLETED.value:
                    return self._finish(PollOutcome.completed(job_id, payload))
                if status == PollerState.FAILED.value:
                    return self._finish(PollOutcome.failed(job_id, payload.get("error")))

                if self.timeout is not None and self._clock() - started >= self.timeout:
                    return self._finish(PollOutcome.failed(job_id, "Polling timed out"))

                await self._sleep()

            return None
        finally:
            if self.state == PollerState.POLLING:
                # 태스크 취소 등으로 빠져나온 경우
                self._cancel.set()
                self.state = PollerState.CANCELLED


class HttpStatusClient:
    """검색 상태 엔드포인트 HTTP 클라이언트

    프로세스 단위로 세션을 재사용하고 close()로 정리합니다.
    """

    STATUS_PATH = "/api/events/search/status"

    def __init__(self, base_url: str, timeout_s: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._lock = asyncio.Lock()
        self._session: Optional[AsyncSession] = None

    async def _ensure_session(self) -> AsyncSession:
        async with self._lock:
            if self._session is None:
                self._session = AsyncSession(headers={"Accept": "application/json"}, trust_env=False)
            return self._session

    async def fetch(self, job_id: str) -> Dict[str, Any]:
        """잡 상태 조회

        Raises:
            JobNotFoundException: 404
            StatusPollException: 네트워크 오류 또는 비정상 응답
        """
        sess = await self._ensure_session()
        try:
            resp = await sess.get(
                f"{self.base_url}{self.STATUS_PATH}",
                params={"jobId": job_id},
                timeout=self.timeout_s,
            )
        except Exception as e:
            logger.info(f"[HTTP_CLIENT] GET failed: {type(e).__name__}")
            raise StatusPollException(job_id, type(e).__name__) from e

        if resp.status_code == 404:
            raise JobNotFoundException(job_id)
        if resp.status_code != 200:
            raise StatusPollException(job_id, f"HTTP {resp.status_code}")

        try:
            return resp.json()
        except ValueError as e:
            raise StatusPollException(job_id, "Invalid JSON") from e

    async def close(self) -> None:
        async with self._lock:
            if self._session is None:
                return
            await self._session.close()
            self._session = None


async def wait_for_job(
    base_url: str,
    job_id: str,
    interval: float = 3.0,
    timeout: Optional[float] = None,
) -> Optional[PollOutcome]:
    """HTTP로 잡이 끝날 때까지 폴링 (스크립트/CLI용 헬퍼)"""
    client = HttpStatusClient(base_url)
    try:
        poller = StatusPoller(client.fetch, interval=interval, timeout=timeout)
        return await poller.poll(job_id)
    finally:
        await client.close()
