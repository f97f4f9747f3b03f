"""데이터베이스 모델"""
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from eventvista.core.database import Base
from eventvista.utils.time_utils import utcnow


class JobStatus(str, Enum):
    """스크래핑 잡 상태

    running → completed | failed 단방향 전이만 허용됩니다.
    """

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class Event(Base):
    """이벤트 테이블 (검색/목록 조회의 레코드 스토어)"""

    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    event_type = Column(String(50), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="active", index=True)
    event_date = Column(DateTime, nullable=False, index=True)
    event_end_date = Column(DateTime, nullable=True)
    venue_name = Column(String(255), nullable=True)
    venue_address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=False, index=True)
    country = Column(String(10), nullable=False, default="US")
    is_online = Column(Boolean, nullable=False, default=False)
    is_free = Column(Boolean, nullable=False, default=False)
    price_min = Column(Float, nullable=True)
    price_max = Column(Float, nullable=True)
    currency = Column(String(10), nullable=False, default="USD")
    organizer_name = Column(String(255), nullable=True)
    tech_stack = Column(JSON, nullable=False, default=list)
    quality_score = Column(Float, nullable=False, default=0.0)
    external_url = Column(String(2048), nullable=True)
    image_url = Column(String(2048), nullable=True)
    source_platform = Column(String(50), nullable=False)
    source_id = Column(String(255), nullable=False)
    scraped_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    last_updated = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # (source_platform, source_id) 유니크 제약이 스크래핑 중복 방지의 최종 보루
    __table_args__ = (
        UniqueConstraint("source_platform", "source_id", name="uq_event_source"),
        Index("idx_event_rank", "quality_score", "event_date"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title[:30]}, source={self.source_platform})>"


class ScrapingJob(Base):
    """스크래핑 잡 레코드 (비동기 검색의 수명주기)"""

    __tablename__ = "scraping_jobs"

    id = Column(String(64), primary_key=True)
    platform = Column(String(50), nullable=False, default="multi", index=True)
    status = Column(String(20), nullable=False, default=JobStatus.RUNNING.value, index=True)
    query = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    platforms = Column(JSON, nullable=False, default=list)
    events_scraped = Column(Integer, nullable=False, default=0)
    attempts = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_job_status_started", "status", "started_at"),
    )

    @property
    def job_status(self) -> JobStatus:
        return JobStatus(self.status)

    def __repr__(self) -> str:
        return f"<ScrapingJob(id={self.id}, status={self.status}, scraped={self.events_scraped})>"
