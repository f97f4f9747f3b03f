"""인프라 서비스 (공유 스토어, 잡 큐) - export only."""

from .impl import (
    Delivery,
    InMemoryJobQueue,
    InMemorySharedStore,
    JobQueue,
    NackResult,
    QueueMessage,
    RedisJobQueue,
    RedisSharedStore,
    RequeueReport,
    SharedStore,
    build_job_queue,
    build_shared_store,
)

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
