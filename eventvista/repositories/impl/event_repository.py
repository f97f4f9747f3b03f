"""이벤트 리포지토리 - 검색/목록 조회 및 스크랩 결과 저장"""
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import String, cast, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from eventvista.core.logging import logger, sanitize_for_log
from eventvista.repositories.models import Event, ScrapingJob
from eventvista.schemas.event_schema import ScrapedEvent, SearchFilters
from eventvista.utils.time_utils import add_months, utcnow

from .errors import translate_db_error

ACTIVE_STATUS = "active"
JOB_RESULT_LIMIT = 100


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_date_window(bucket: Optional[str], now: datetime) -> Optional[Tuple[datetime, datetime]]:
    """날짜 버킷 → [시작, 끝) 구간 (알 수 없는 버킷은 None)"""
    if bucket == "today":
        return now, now + timedelta(days=1)
    if bucket == "thisWeek":
        return now, now + timedelta(days=7)
    if bucket == "thisMonth":
        return now, add_months(now, 1)
    return None


class EventRepository:
    """이벤트 데이터 액세스 레이어

    정렬 규칙: quality_score 내림차순 → event_date 오름차순 (→ id, 페이지 안정성)
    """

    def __init__(self, db: Session):
        self.db = db

    def _filter_conditions(self, filters: SearchFilters, now: datetime) -> list:
        conditions = [Event.status == ACTIVE_STATUS]

        window = build_date_window(filters.date, now)
        if window:
            conditions.append(Event.event_date >= window[0])
            conditions.append(Event.event_date < window[1])
        else:
            # 지난 이벤트는 항상 제외
            conditions.append(Event.event_date >= now)

        if filters.city:
            conditions.append(func.lower(Event.city) == filters.city.lower())

        if filters.event_type:
            conditions.append(Event.event_type == filters.event_type)

        if filters.price == "free":
            conditions.append(Event.is_free.is_(True))
        elif filters.price == "paid":
            conditions.append(Event.is_free.is_(False))

        if filters.platforms:
            conditions.append(Event.source_platform.in_(filters.platforms))

        return conditions

    @staticmethod
    def _text_condition(query: str):
        term = f"%{_escape_like(query.strip())}%"
        return or_(
            Event.title.ilike(term, escape="\\"),
            Event.description.ilike(term, escape="\\"),
            Event.organizer_name.ilike(term, escape="\\"),
            Event.venue_name.ilike(term, escape="\\"),
            cast(Event.tech_stack, String).ilike(term, escape="\\"),
        )

    def _ranked(self, conditions: list):
        return self.db.query(Event).filter(*conditions).order_by(
            Event.quality_score.desc(),
            Event.event_date.asc(),
            Event.id.asc(),
        )

    def _count(self, conditions: list) -> int:
        return self.db.query(func.count(Event.id)).filter(*conditions).scalar() or 0

    def search(self, query: str, filters: SearchFilters, limit: int) -> Tuple[List[Event], int]:
        """자유 텍스트 + 필터 검색 (상위 limit개와 전체 개수)"""
        try:
            conditions = self._filter_conditions(filters, utcnow())
            conditions.append(self._text_condition(query))
            events = self._ranked(conditions).limit(limit).all()
            return events, self._count(conditions)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[EVENTS] Search query failed: query='{sanitize_for_log(query)}', error={type(e).__name__}")
            raise translate_db_error(e, "event_search") from e

    def list_page(self, filters: SearchFilters, offset: int, limit: int) -> Tuple[List[Event], int]:
        """필터 목록 조회 (페이지 단위)"""
        try:
            conditions = self._filter_conditions(filters, utcnow())
            events = self._ranked(conditions).offset(offset).limit(limit).all()
            return events, self._count(conditions)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[EVENTS] Listing query failed: {type(e).__name__}")
            raise translate_db_error(e, "event_listing") from e

    def exists(self, source_platform: str, source_id: str) -> bool:
        """중복 판정 신호 (source_platform, source_id) 존재 여부"""
        return self.db.query(Event.id).filter(
            Event.source_platform == source_platform,
            Event.source_id == source_id,
        ).first() is not None

    def save_new(self, events: Iterable[ScrapedEvent], default_city: str) -> int:
        """새 이벤트만 저장하고 저장 건수 반환

        같은 메시지가 재전달되어도 유니크 제약 덕분에 중복 저장되지 않습니다.
        """
        saved = 0
        try:
            for item in events:
                if self.exists(item.source_platform, item.source_id):
                    continue

                row = Event(
                    **item.model_dump(exclude={"city"}),
                    city=item.city or default_city,
                    status=ACTIVE_STATUS,
                )
                self.db.add(row)
                try:
                    self.db.commit()
                    saved += 1
                except IntegrityError:
                    # 다른 워커가 먼저 저장한 경우
                    self.db.rollback()
                    logger.debug(f"[EVENTS] Duplicate skipped: {item.source_platform}/{item.source_id}")
            return saved
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[EVENTS] Failed to save scraped events: {type(e).__name__}")
            raise translate_db_error(e, "event_save") from e

    def find_for_job(self, job: ScrapingJob, limit: int = JOB_RESULT_LIMIT) -> List[Event]:
        """잡 시작 이후 해당 도시/플랫폼에서 스크랩된 이벤트 (최신순)

        started_at은 재시도에도 바뀌지 않으므로 모든 시도의 저장분이 포함됩니다.
        """
        try:
            since = job.started_at or job.created_at
            query = self.db.query(Event).filter(Event.scraped_at >= since)
            if job.city:
                query = query.filter(func.lower(Event.city) == job.city.lower())
            if job.platforms:
                query = query.filter(Event.source_platform.in_(list(job.platforms)))
            return query.order_by(Event.scraped_at.desc(), Event.id.desc()).limit(limit).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[EVENTS] Job result query failed: job={job.id}, error={type(e).__name__}")
            raise translate_db_error(e, "event_job_results") from e
