"""데이터 액세스 패키지 - export only."""

from .models import Event, JobStatus, ScrapingJob, TERMINAL_STATUSES
from .impl import EventRepository, JobRepository

__all__ = ["Event", "JobStatus", "ScrapingJob", "TERMINAL_STATUSES", "EventRepository", "JobRepository"]
