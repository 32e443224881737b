# tests/conftest.py

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from eventhub.db import build_engine, build_session_factory, get_session_factory, init_models
from eventhub.models.event import Event, EventCategoryType
from eventhub.realtime.change_feed import ChangeFeed
from eventhub.services.attendance_store import AttendanceStore, KeyedLocks


# --- Database Setup (파일 기반 SQLite: 세션마다 별도 연결) ---
@pytest.fixture
async def engine(tmp_path):
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'eventhub_test.db'}")
    await init_models(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def feed():
    change_feed = ChangeFeed()
    yield change_feed
    change_feed.close()


@pytest.fixture
def store(session_factory, feed):
    return AttendanceStore(session_factory=session_factory, change_feed=feed, locks=KeyedLocks())


@pytest.fixture
def user_id():
    return uuid.uuid4()


# --- Event Factory ---
@pytest.fixture
def make_event(session_factory):
    """이벤트를 직접 저장하는 팩토리 (과거 날짜도 허용)"""

    async def _make_event(
        title: str = "Python Meetup",
        date: datetime | None = None,
        category: EventCategoryType = EventCategoryType.CONFERENCE,
        created_by: uuid.UUID | None = None,
        description: str = "A gathering for people who like building things.",
    ) -> Event:
        event = Event(
            title=title,
            description=description,
            date=date or datetime.now(timezone.utc) + timedelta(days=7),
            location="Main Hall",
            category=category,
            created_by=created_by or uuid.uuid4(),
        )
        async with session_factory() as db:
            db.add(event)
            await db.commit()
            await db.refresh(event)
        return event

    return _make_event


# --- Async Helpers ---
async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> None:
    """비동기 전달(ChangeFeed → 세션)이 끝날 때까지 대기"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


async def drain() -> None:
    """대기 중인 전달 태스크가 한 바퀴 돌 시간을 줌"""
    for _ in range(10):
        await asyncio.sleep(0.01)


# --- HTTP Client ---
@pytest.fixture
async def client(session_factory, feed):
    from main import app

    app.state.change_feed = feed
    app.state.attendance_locks = KeyedLocks()
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()
