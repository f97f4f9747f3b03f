"""Services implementation package."""

from .factory import build_job_queue, build_shared_store
from .job_queue import (
    Delivery,
    InMemoryJobQueue,
    JobQueue,
    NackResult,
    QueueMessage,
    RedisJobQueue,
    RequeueReport,
)
from .shared_store import InMemorySharedStore, RedisSharedStore, SharedStore

__all__ = [
    "Delivery",
    "InMemoryJobQueue",
    "InMemorySharedStore",
    "JobQueue",
    "NackResult",
    "QueueMessage",
    "RedisJobQueue",
    "RedisSharedStore",
    "RequeueReport",
    "SharedStore",
    "build_job_queue",
    "build_shared_store",
]
