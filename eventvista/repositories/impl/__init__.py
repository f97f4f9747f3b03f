"""Repositories implementation package."""

from .event_repository import EventRepository
from .job_repository import JobRepository

__all__ = ["EventRepository", "JobRepository"]
