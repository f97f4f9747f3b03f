"""설정 기반 인프라 구성 (Redis / in-memory)"""
from eventvista.core.config import Settings
from eventvista.core.logging import logger

from .job_queue import InMemoryJobQueue, JobQueue, RedisJobQueue
from .shared_store import InMemorySharedStore, RedisSharedStore, SharedStore


def build_shared_store(settings: Settings) -> SharedStore:
    if settings.redis_disabled:
        logger.warning("[STORE] Redis disabled, using in-memory shared store (single process only)")
        return InMemorySharedStore()
    return RedisSharedStore.from_url(settings.redis_url)


def build_job_queue(settings: Settings) -> JobQueue:
    options = {
        "max_attempts": settings.queue_max_attempts,
        "backoff_base": settings.queue_backoff_base_s,
        "initial_delay": settings.queue_initial_delay_s,
    }
    if settings.redis_disabled:
        logger.warning("[QUEUE] Redis disabled, using in-memory job queue (single process only)")
        return InMemoryJobQueue(**options)
    return RedisJobQueue.from_url(settings.redis_url, settings.queue_name, **options)
