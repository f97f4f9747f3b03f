"""워커 프로세스 진입점

    python -m eventvista.worker
"""
import asyncio
import signal
import sys

from eventvista.core.config import settings
from eventvista.core.database import init_db
from eventvista.core.logging import logger
from eventvista.services import build_job_queue

from . import build_sweeper, build_worker


async def main() -> int:
    if settings.redis_disabled:
        logger.error("[WORKER] Standalone worker requires Redis (redis_disabled runs the worker inside the API)")
        return 1

    init_db()
    queue = build_job_queue(settings)
    worker = build_worker(settings, queue)
    scheduler = build_sweeper(settings, queue).schedule()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_event.set))

    scheduler.start()
    try:
        await worker.run(stop_event)
    finally:
        scheduler.shutdown(wait=False)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
