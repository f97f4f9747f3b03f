"""FastAPI 앱 팩토리"""
import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from eventvista.api import dev_router, events_router, get_job_queue, health_router, jobs_router
from eventvista.api.responses import error_response
from eventvista.core.config import settings
from eventvista.core.database import init_db
from eventvista.core.exceptions import (
    EventVistaException,
    JobNotFoundException,
    ValidationException,
)
from eventvista.core.logging import logger
from eventvista.worker import build_sweeper, build_worker


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 생명주기"""
    logger.info("Starting application...")
    init_db()

    stop_event = asyncio.Event()
    worker_task = None
    scheduler = None
    if settings.redis_disabled and settings.embedded_worker:
        # in-memory 큐는 프로세스 로컬이므로 워커를 같은 프로세스에서 실행
        # (워커/스위퍼의 DB·큐 호출은 to_thread로 돌아 요청 처리를 막지 않음)
        queue = get_job_queue()
        worker_task = asyncio.create_task(build_worker(settings, queue).run(stop_event))
        scheduler = build_sweeper(settings, queue).schedule()
        scheduler.start()
        logger.info("[WORKER] Embedded worker started (redis_disabled mode)")

    logger.info("Application started")
    yield
    logger.info("Shutting down application...")

    stop_event.set()
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    if worker_task is not None:
        await worker_task


def register_exception_handlers(app: FastAPI) -> None:
    """도메인 예외 → HTTP 응답 (내부 상세는 노출하지 않음)"""

    @app.exception_handler(ValidationException)
    async def handle_validation(request: Request, exc: ValidationException):
        logger.warning(f"[API] Validation failed: {exc.error_code} field={exc.field}")
        return error_response(400, exc.reason, exc.error_code)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        fields = [".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()]
        logger.warning(f"[API] Request validation failed: {fields}")
        return error_response(400, f"Invalid request parameters: {', '.join(fields)}", "VALIDATION_ERROR")

    @app.exception_handler(JobNotFoundException)
    async def handle_job_not_found(request: Request, exc: JobNotFoundException):
        return error_response(404, "Job not found", exc.error_code)

    @app.exception_handler(EventVistaException)
    async def handle_domain_error(request: Request, exc: EventVistaException):
        logger.error(f"[API] Unhandled domain error on {request.url.path}: {exc.error_code}")
        return error_response(500, "Internal server error", exc.error_code)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error(f"[API] Unexpected error on {request.url.path}: {type(exc).__name__}", exc_info=exc)
        return error_response(500, "Internal server error", "INTERNAL_ERROR")


def create_app() -> FastAPI:
    """
    FastAPI 앱 생성 (Factory Pattern)

    Returns:
        FastAPI 앱 인스턴스
    """
    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan,
    )

    # CORS (클라이언트가 레이트 리밋 헤더를 읽을 수 있도록 노출)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
    )

    register_exception_handlers(app)

    # 라우터 등록
    app.include_router(health_router)
    app.include_router(events_router)
    app.include_router(jobs_router)
    app.include_router(dev_router)

    return app


# 앱 인스턴스 생성 (uvicorn이 로드할 수 있도록)
app = create_app()
