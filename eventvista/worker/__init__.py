"""Worker Layer - 스크래핑 잡 실행 및 정리

- ScrapingWorker: 큐 소비자
- JobSweeper: 멈춘 메시지/오래된 running 잡 정리
- build_worker / build_sweeper: 설정 기반 구성
"""
from eventvista.core.config import Settings
from eventvista.core.database import SessionLocal
from eventvista.scrapers import build_scrapers
from eventvista.services.impl.job_queue import JobQueue

from .scraping_worker import ProcessResult, ScrapingWorker
from .sweeper import JobSweeper


def build_worker(settings: Settings, queue: JobQueue, session_factory=SessionLocal) -> ScrapingWorker:
    return ScrapingWorker(
        queue=queue,
        session_factory=session_factory,
        scrapers=build_scrapers(settings),
        concurrency=settings.worker_concurrency,
        poll_interval=settings.worker_poll_interval_s,
        stop_on_first_results=settings.worker_stop_on_first_results,
        scrape_limit=settings.worker_scrape_limit,
    )


def build_sweeper(settings: Settings, queue: JobQueue, session_factory=SessionLocal) -> JobSweeper:
    return JobSweeper(
        queue=queue,
        session_factory=session_factory,
        max_runtime_s=settings.job_max_runtime_s,
        visibility_timeout_s=settings.queue_visibility_timeout_s,
        interval_s=settings.sweep_interval_s,
    )


__all__ = ["JobSweeper", "ProcessResult", "ScrapingWorker", "build_sweeper", "build_worker"]
