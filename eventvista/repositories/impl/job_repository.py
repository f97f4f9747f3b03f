"""스크래핑 잡 리포지토리 - 잡 레코드 상태 머신

모든 상태 전이는 `UPDATE ... WHERE id = :id AND status = 'running'` 한 문장으로
수행됩니다(compare-and-set). 재전달된 메시지나 스위퍼가 같은 레코드를 다시
건드려도 종료 상태가 덮어써지지 않습니다.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventvista.core.exceptions import InvalidJobTransitionException, JobNotFoundException
from eventvista.core.logging import logger
from eventvista.repositories.models import JobStatus, ScrapingJob
from eventvista.utils.time_utils import utcnow

from .errors import translate_db_error

MULTI_PLATFORM = "multi"


class JobRepository:
    """잡 레코드 데이터 액세스 레이어"""

    def __init__(self, db: Session):
        self.db = db

    def create_running(
        self,
        job_id: str,
        query: str,
        city: str,
        platforms: Sequence[str],
    ) -> ScrapingJob:
        """running 상태로 잡 생성 (오케스트레이터 전용)"""
        try:
            now = utcnow()
            job = ScrapingJob(
                id=job_id,
                platform=MULTI_PLATFORM,
                status=JobStatus.RUNNING.value,
                query=query,
                city=city,
                platforms=list(platforms),
                events_scraped=0,
                attempts=0,
                created_at=now,
                started_at=now,
            )
            self.db.add(job)
            self.db.commit()
            self.db.refresh(job)
            logger.info(f"[JOBS] Job created: {job.id}")
            return job
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[JOBS] Failed to create job {job_id}: {type(e).__name__}")
            raise translate_db_error(e, "job_create") from e

    def get(self, job_id: str) -> Optional[ScrapingJob]:
        """ID로 잡 조회"""
        try:
            job = self.db.get(ScrapingJob, job_id)
            if job is not None:
                # 다른 세션(워커)의 전이를 보기 위해 항상 최신 상태로
                self.db.refresh(job)
            return job
        except SQLAlchemyError as e:
            self.db.rollback()
            raise translate_db_error(e, "job_get") from e

    def get_or_raise(self, job_id: str) -> ScrapingJob:
        job = self.get(job_id)
        if job is None:
            raise JobNotFoundException(job_id)
        return job

    def _update_running(self, job_id: str, values: Dict[str, Any], operation: str) -> bool:
        """running 상태일 때만 갱신 (성공 여부 반환)"""
        try:
            stmt = (
                update(ScrapingJob)
                .where(ScrapingJob.id == job_id)
                .where(ScrapingJob.status == JobStatus.RUNNING.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            result = self.db.execute(stmt)
            self.db.commit()
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[JOBS] {operation} failed for {job_id}: {type(e).__name__}")
            raise translate_db_error(e, operation) from e

    def begin_attempt(self, job_id: str) -> bool:
        """실행 시도 시작: 진행 카운터 초기화 후 attempts 증가

        재전달 시 이전 시도의 카운트가 누적되지 않도록 0부터 다시 셉니다.
        started_at은 잡 생성 시각 그대로 둡니다. 잡 결과 조회가 이 시각 이후
        스크랩된 이벤트를 기준으로 하므로, 이전 시도가 저장한 이벤트도 결과에 남습니다.
        """
        return self._update_running(
            job_id,
            {
                "events_scraped": 0,
                "attempts": ScrapingJob.attempts + 1,
                "started_at": func.coalesce(ScrapingJob.started_at, utcnow()),
            },
            "job_begin_attempt",
        )

    def increment_scraped(self, job_id: str, count: int) -> bool:
        """스크랩 카운터 원자적 증가"""
        if count <= 0:
            return False
        return self._update_running(
            job_id,
            {"events_scraped": ScrapingJob.events_scraped + count},
            "job_increment",
        )

    def transition(
        self,
        job_id: str,
        target: JobStatus,
        events_scraped: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> bool:
        """running → 종료 상태 전이

        Returns:
            True: 이번 호출이 전이를 수행함
            False: 이미 종료 상태이거나 잡이 없음 (덮어쓰지 않음)

        Raises:
            InvalidJobTransitionException: 종료 상태가 아닌 대상
        """
        if not target.is_terminal:
            raise InvalidJobTransitionException(job_id, target.value)

        values: Dict[str, Any] = {
            "status": target.value,
            "completed_at": utcnow(),
        }
        if events_scraped is not None:
            values["events_scraped"] = events_scraped
        if error_message is not None:
            values["error_message"] = error_message

        changed = self._update_running(job_id, values, f"job_mark_{target.value}")
        if changed:
            logger.info(f"[JOBS] Job {job_id} -> {target.value}")
        else:
            logger.warning(f"[JOBS] Job {job_id} not running; {target.value} transition skipped")
        return changed

    def mark_completed(self, job_id: str, events_scraped: Optional[int] = None) -> bool:
        return self.transition(job_id, JobStatus.COMPLETED, events_scraped=events_scraped)

    def mark_failed(self, job_id: str, error_message: str) -> bool:
        return self.transition(job_id, JobStatus.FAILED, error_message=error_message)

    def find_stale_running(self, older_than: datetime, limit: int = 100) -> List[ScrapingJob]:
        """older_than 이전에 시작되어 아직 running인 잡"""
        try:
            started = func.coalesce(ScrapingJob.started_at, ScrapingJob.created_at)
            return self.db.query(ScrapingJob).filter(
                ScrapingJob.status == JobStatus.RUNNING.value,
                started < older_than,
            ).order_by(started.asc()).limit(limit).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise translate_db_error(e, "job_find_stale") from e

    def list_jobs(
        self,
        status: Optional[str] = None,
        platform: Optional[str] = None,
        limit: int = 10,
    ) -> List[ScrapingJob]:
        """최근 잡 목록"""
        try:
            query = self.db.query(ScrapingJob)
            if status:
                query = query.filter(ScrapingJob.status == status)
            if platform:
                query = query.filter(ScrapingJob.platform == platform)
            return query.order_by(ScrapingJob.created_at.desc()).limit(limit).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise translate_db_error(e, "job_list") from e
