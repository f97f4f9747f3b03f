"""스크래핑 워커 - 큐 메시지를 받아 잡을 실행

메시지는 at-least-once로 전달되므로 같은 잡이 여러 번 처리될 수 있습니다.
- 잡 상태 전이는 JobRepository의 조건부 UPDATE로만 수행
- 이벤트 저장은 (source_platform, source_id) 유니크 제약으로 중복 제거

DB/큐 호출은 동기 API이므로 asyncio.to_thread로 실행합니다. 이벤트 루프는
스크래퍼 I/O와 다른 잡 처리에만 쓰입니다 (API 프로세스에 내장된 경우 포함).
"""
import asyncio
from typing import Dict, List, Mapping, Optional, Sequence, Set

from sqlalchemy.orm import sessionmaker

from eventvista.core.database import get_db_context
from eventvista.core.exceptions import EventVistaException, QueueException, ScraperException
from eventvista.core.logging import logger, sanitize_for_log
from eventvista.repositories.impl.event_repository import EventRepository
from eventvista.repositories.impl.job_repository import JobRepository
from eventvista.schemas.event_schema import ScrapedEvent
from eventvista.scrapers.base import EventScraper
from eventvista.services.impl.job_queue import Delivery, JobQueue, NackResult, QueueMessage


class ProcessResult:
    COMPLETED = "completed"
    RETRYING = "retrying"
    FAILED = "failed"
    SKIPPED = "skipped"  # 이미 종료된 잡 (중복 전달)
    DROPPED = "dropped"  # 레코드 없는 잡
    RECLAIMED = "reclaimed"  # 스위퍼가 먼저 회수해 재전달한 메시지


def _error_message(error: Exception) -> str:
    if isinstance(error, EventVistaException):
        return error.message
    return f"Unexpected worker error: {type(error).__name__}"


class ScrapingWorker:
    """큐 소비자 (인스턴스당 동시 처리 수 제한)"""

    def __init__(
        self,
        queue: JobQueue,
        session_factory: sessionmaker,
        scrapers: Mapping[str, EventScraper],
        concurrency: int = 2,
        poll_interval: float = 1.0,
        stop_on_first_results: bool = True,
        scrape_limit: int = 50,
    ):
        if concurrency <= 0:
            raise ValueError("concurrency must be positive")
        self.queue = queue
        self.session_factory = session_factory
        self.scrapers = dict(scrapers)
        self.concurrency = concurrency
        self.poll_interval = poll_interval
        self.stop_on_first_results = stop_on_first_results
        self.scrape_limit = scrape_limit
        self._in_flight: Set[asyncio.Task] = set()

    async def _wait(self, stop_event: asyncio.Event) -> None:
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            pass

    async def run(self, stop_event: asyncio.Event) -> None:
        """stop_event가 세팅될 때까지 메시지 처리 (종료 시 진행 중 잡은 마무리)"""
        slots = asyncio.Semaphore(self.concurrency)
        logger.info(f"[WORKER] Started (concurrency={self.concurrency})")

        while not stop_event.is_set():
            await slots.acquire()
            if stop_event.is_set():
                slots.release()
                break

            try:
                delivery = await asyncio.to_thread(self.queue.claim)
            except QueueException as e:
                logger.error(f"[WORKER] Claim failed: {e.error_code}")
                delivery = None

            if delivery is None:
                slots.release()
                await self._wait(stop_event)
                continue

            task = asyncio.create_task(self._run_one(delivery, slots))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)

        if self._in_flight:
            logger.info(f"[WORKER] Draining {len(self._in_flight)} in-flight job(s)")
            await asyncio.gather(*self._in_flight, return_exceptions=True)
        logger.info("[WORKER] Stopped")

    async def _run_one(self, delivery: Delivery, slots: asyncio.Semaphore) -> None:
        try:
            await self.process(delivery)
        finally:
            slots.release()

    async def process(self, delivery: Delivery) -> str:
        """메시지 하나 처리 후 ack/nack

        Returns:
            ProcessResult 값
        """
        message = delivery.message
        job_id = message.job_id
        logger.info(f"[WORKER] Processing job {job_id} (attempt {delivery.attempt + 1})")

        try:
            skipped = await asyncio.to_thread(self._begin, delivery)
            if skipped is not None:
                return skipped

            found = await self._scrape_platforms(message)
            await asyncio.to_thread(self._complete, delivery, found)
            logger.info(f"[WORKER] Job {job_id} completed: {found} events found")
            return ProcessResult.COMPLETED

        except Exception as e:
            # 워커 루프는 어떤 잡 실패에도 멈추지 않음
            logger.error(f"[WORKER] Job {job_id} attempt failed: {type(e).__name__}", exc_info=True)
            return await asyncio.to_thread(self._handle_failure, delivery, _error_message(e))

    def _begin(self, delivery: Delivery) -> Optional[str]:
        """시도 시작 (진행할 수 없으면 ack 후 ProcessResult 반환)"""
        job_id = delivery.message.job_id
        with get_db_context(self.session_factory) as db:
            jobs = JobRepository(db)
            job = jobs.get(job_id)
            if job is None:
                logger.warning(f"[WORKER] Job record not found, dropping message: {job_id}")
                self.queue.ack(delivery)
                return ProcessResult.DROPPED

            if job.job_status.is_terminal or not jobs.begin_attempt(job_id):
                logger.info(f"[WORKER] Job {job_id} already {job.status}, acknowledging duplicate")
                self.queue.ack(delivery)
                return ProcessResult.SKIPPED
        return None

    def _store(self, message: QueueMessage, scraped: Sequence[ScrapedEvent]) -> int:
        """스크랩 결과 저장 + 진행 카운터 증가 (새로 저장된 건수 반환)"""
        with get_db_context(self.session_factory) as db:
            saved = EventRepository(db).save_new(scraped, default_city=message.city)
            # 이전 시도가 이미 저장한 이벤트도 이번 잡이 찾은 결과로 셉니다
            JobRepository(db).increment_scraped(message.job_id, len(scraped))
        return saved

    def _complete(self, delivery: Delivery, found: int) -> None:
        with get_db_context(self.session_factory) as db:
            JobRepository(db).mark_completed(delivery.message.job_id, found)
        self.queue.ack(delivery)

    def _handle_failure(self, delivery: Delivery, error: str) -> str:
        job_id = delivery.message.job_id
        try:
            result = self.queue.nack(delivery, error)
        except QueueException as e:
            # nack 실패 시 메시지는 processing에 남아 visibility timeout 후 재전달
            logger.error(f"[WORKER] Nack failed for job {job_id}: {e.error_code}")
            return ProcessResult.RETRYING

        if result == NackResult.RETRY:
            return ProcessResult.RETRYING
        if result == NackResult.NOT_OWNED:
            return ProcessResult.RECLAIMED

        # 재시도 소진 → 잡을 failed로 (정확히 한 번, 조건부 UPDATE)
        try:
            with get_db_context(self.session_factory) as db:
                JobRepository(db).mark_failed(job_id, error)
        except EventVistaException as e:
            # 잡은 running으로 남고 스위퍼가 job_max_runtime_s 후 failed 처리
            logger.error(f"[WORKER] Could not mark job {job_id} failed: {e.error_code}")
        return ProcessResult.FAILED

    async def _scrape_platforms(self, message: QueueMessage) -> int:
        """플랫폼 순서대로 스크래핑 후 저장 (찾은 이벤트 수 반환)

        Raises:
            ScraperException: 시도한 모든 플랫폼이 실패한 경우
        """
        found = 0
        attempted: List[str] = []
        failures: Dict[str, str] = {}

        for platform in message.platforms:
            scraper: Optional[EventScraper] = self.scrapers.get(platform)
            if scraper is None:
                logger.warning(f"[WORKER] Skipping unsupported platform: {sanitize_for_log(platform, 50)}")
                continue

            attempted.append(platform)
            try:
                scraped = await scraper.scrape(message.query, message.city, self.scrape_limit)
            except ScraperException as e:
                failures[platform] = e.error_code
                logger.error(f"[WORKER] {platform} scraping failed for {message.city}: {e.error_code}")
                continue

            if not scraped:
                continue

            saved = await asyncio.to_thread(self._store, message, scraped)
            found += len(scraped)
            logger.info(f"[WORKER] {platform}: scraped={len(scraped)}, saved={saved}")

            if self.stop_on_first_results:
                break

        if attempted and len(failures) == len(attempted):
            raise ScraperException(
                f"All platforms failed: {', '.join(attempted)}",
                "SCRAPE_FAILED",
                {"failures": failures},
            )
        return found
