"""헬스 체크 엔드포인트"""
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from eventvista import __version__
from eventvista.api.dependencies import get_shared_store
from eventvista.core import database
from eventvista.core.logging import logger
from eventvista.schemas import HealthResponse
from eventvista.services import SharedStore
from eventvista.utils.time_utils import utcnow

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(store: SharedStore = Depends(get_shared_store)):
    """
    헬스 체크 엔드포인트

    - 서버 상태
    - Redis(공유 스토어) 연결 상태
    - DB 연결 상태
    """
    redis_ok = store.ping()
    if not redis_ok:
        logger.warning("[HEALTH] Shared store ping failed")

    db_ok = False
    try:
        with database.engine.connect() as connection:
            connection.exec_driver_sql("SELECT 1")
            db_ok = True
    except SQLAlchemyError as e:
        logger.error(f"[HEALTH] Database connection error: {type(e).__name__}")

    status = "ok" if redis_ok and db_ok else ("degraded" if redis_ok or db_ok else "error")

    return HealthResponse(
        status=status,
        timestamp=utcnow(),
        version=__version__,
        redis=redis_ok,
        database=db_ok,
    )


@router.get("/")
def root():
    """루트 엔드포인트"""
    return {
        "service": "Tech Event Vista",
        "version": __version__,
        "docs": "/docs",
    }
