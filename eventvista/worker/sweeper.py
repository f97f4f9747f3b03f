"""잡 스위퍼 - 멈춘 메시지 재전달 및 오래된 running 잡 정리

큐 메시지가 유실되면 잡 레코드가 영원히 running으로 남을 수 있으므로,
주기적으로 다음을 수행합니다.
1. visibility timeout이 지난 처리 중 메시지를 재전달 (소진 시 잡 failed)
2. job_max_runtime_s보다 오래 running인 잡을 failed로 승격
"""
import asyncio
from datetime import datetime, timedelta
from typing import Callable, Dict

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import sessionmaker

from eventvista.core.database import get_db_context
from eventvista.core.exceptions import EventVistaException
from eventvista.core.logging import logger
from eventvista.repositories.impl.job_repository import JobRepository
from eventvista.services.impl.job_queue import JobQueue
from eventvista.utils.time_utils import utcnow

TIMED_OUT_MESSAGE = "Job timed out"
STALLED_EXHAUSTED_MESSAGE = "Job abandoned after repeated worker timeouts"


class JobSweeper:
    """주기 정리 작업"""

    def __init__(
        self,
        queue: JobQueue,
        session_factory: sessionmaker,
        max_runtime_s: int = 1800,
        visibility_timeout_s: int = 600,
        interval_s: int = 60,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.queue = queue
        self.session_factory = session_factory
        self.max_runtime_s = max_runtime_s
        self.visibility_timeout_s = visibility_timeout_s
        self.interval_s = interval_s
        self._clock = clock

    def sweep(self) -> Dict[str, int]:
        """한 번 정리 실행

        Returns:
            {"requeued": n, "exhausted": n, "timed_out": n}
        """
        report = self.queue.requeue_stalled(self.visibility_timeout_s)
        cutoff = self._clock() - timedelta(seconds=self.max_runtime_s)

        with get_db_context(self.session_factory) as db:
            jobs = JobRepository(db)
            for message in report.exhausted:
                jobs.mark_failed(message.job_id, STALLED_EXHAUSTED_MESSAGE)

            timed_out = 0
            for job in jobs.find_stale_running(cutoff):
                if jobs.mark_failed(job.id, TIMED_OUT_MESSAGE):
                    timed_out += 1

        result = {
            "requeued": report.requeued,
            "exhausted": len(report.exhausted),
            "timed_out": timed_out,
        }
        if timed_out:
            logger.warning(f"[SWEEPER] Promoted {timed_out} stale job(s) to failed")
        logger.debug(f"[SWEEPER] Sweep finished: {result}")
        return result

    async def run_sweep(self) -> Dict[str, int]:
        """스케줄러 진입점 (스레드에서 실행, 실패는 기록만 하고 다음 주기에 재시도)"""
        try:
            return await asyncio.to_thread(self.sweep)
        except EventVistaException as e:
            logger.error(f"[SWEEPER] Sweep failed: {e.error_code}")
            return {"requeued": 0, "exhausted": 0, "timed_out": 0}

    def schedule(self, scheduler: AsyncIOScheduler = None) -> AsyncIOScheduler:
        """APScheduler에 주기 작업 등록 (start는 호출자가)"""
        scheduler = scheduler or AsyncIOScheduler()
        scheduler.add_job(
            self.run_sweep,
            trigger=IntervalTrigger(seconds=self.interval_s),
            id="job_sweeper",
            name="Stale Job Sweeper",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"[SWEEPER] Scheduled every {self.interval_s}s (max runtime {self.max_runtime_s}s)")
        return scheduler
