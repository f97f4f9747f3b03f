"""전역 테스트 설정

역할:
- 테스트 환경 구성 (in-memory SQLite, Redis 비활성)
- 공통 Fake 주입 (시계, 스토어, 큐, 스크래퍼)
- 전역 상태 초기화

외부 호출 없음 (HTTP/Postgres/Redis 금지)
"""

from __future__ import annotations

import os

# settings는 import 시점에 생성되므로 eventvista import 전에 설정
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["REDIS_DISABLED"] = "true"
os.environ["EMBEDDED_WORKER"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "INFO"

from datetime import timedelta
from itertools import count
from typing import Any, Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from eventvista.api import get_job_queue, get_shared_store, reset_dependencies
from eventvista.core.database import Base, build_engine, get_db
from eventvista.engine import RateLimiter, ResultCache, SearchOrchestrator
from eventvista.repositories import Event, EventRepository, JobRepository
from eventvista.services import InMemoryJobQueue, InMemorySharedStore
from eventvista.utils.time_utils import utcnow
from tests.fixtures import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_factory() -> Iterator[sessionmaker]:
    """테스트마다 새 in-memory DB"""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db_session(session_factory) -> Iterator[Session]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(clock) -> InMemorySharedStore:
    return InMemorySharedStore(clock=clock)


@pytest.fixture
def queue(clock) -> InMemoryJobQueue:
    return InMemoryJobQueue(max_attempts=3, backoff_base=2.0, initial_delay=0, clock=clock)


@pytest.fixture
def make_event(db_session) -> Callable[..., Event]:
    """이벤트 행 생성 팩토리"""
    sequence = count(1)

    def _make(**overrides: Any) -> Event:
        n = next(sequence)
        values = {
            "title": f"Event {n}",
            "description": "Community event",
            "event_type": "meetup",
            "status": "active",
            "event_date": utcnow() + timedelta(days=2, hours=n),
            "city": "San Francisco",
            "country": "US",
            "is_online": False,
            "is_free": True,
            "currency": "USD",
            "tech_stack": [],
            "quality_score": 0.5,
            "source_platform": "luma",
            "source_id": f"src-{n}",
        }
        values.update(overrides)
        event = Event(**values)
        db_session.add(event)
        db_session.commit()
        return event

    return _make


@pytest.fixture
def orchestrator_factory(db_session, store, queue, clock) -> Callable[..., SearchOrchestrator]:
    def _build(**overrides: Any) -> SearchOrchestrator:
        options = {
            "events": EventRepository(db_session),
            "jobs": JobRepository(db_session),
            "queue": queue,
            "cache": ResultCache(store, default_ttl=30),
            "search_limiter": RateLimiter(store, "search", 100, 900, clock=clock),
            "listing_limiter": RateLimiter(store, "api", 300, 900, clock=clock),
        }
        options.update(overrides)
        return SearchOrchestrator(**options)

    return _build


@pytest.fixture
def orchestrator(orchestrator_factory) -> SearchOrchestrator:
    return orchestrator_factory()


@pytest.fixture
def client(session_factory, store, queue) -> Iterator[TestClient]:
    """의존성을 테스트 스토어/큐/DB로 교체한 TestClient (lifespan 미실행)"""
    from eventvista.app import create_app

    reset_dependencies()
    app = create_app()

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_shared_store] = lambda: store
    app.dependency_overrides[get_job_queue] = lambda: queue

    yield TestClient(app)

    app.dependency_overrides.clear()
    reset_dependencies()
