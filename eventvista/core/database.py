"""데이터베이스 연결 및 세션 관리"""
from contextlib import contextmanager
from typing import Any, Dict, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from eventvista.core.config import settings
from eventvista.core.logging import logger

# SQLAlchemy Base
Base = declarative_base()


def _engine_kwargs(database_url: str) -> Dict[str, Any]:
    """DB 종류별 엔진 옵션

    SQLite(로컬/테스트)는 커넥션 풀 옵션을 받지 않으므로 StaticPool을 사용합니다.
    """
    if database_url.startswith("sqlite"):
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "pool_size": 5,
        "max_overflow": 10,
    }


def build_engine(database_url: str) -> Engine:
    return create_engine(database_url, **_engine_kwargs(database_url))


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine = engine) -> None:
    """데이터베이스 테이블 초기화"""
    # 모델 등록을 위해 import (metadata 채우기)
    from eventvista.repositories import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=bind)
        logger.info("Database tables initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def get_db() -> Generator[Session, None, None]:
    """FastAPI Dependency: DB 세션 제공"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context(session_factory: sessionmaker = SessionLocal) -> Generator[Session, None, None]:
    """Context Manager: DB 세션 제공"""
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
