from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventhub.db import get_db, get_session_factory
from eventhub.realtime.change_feed import ChangeFeed
from eventhub.repositories.event_repository import EventRepository
from eventhub.repositories.attendance_repository import AttendanceRepository
from eventhub.services.attendance_store import AttendanceStore, KeyedLocks
from eventhub.services.event_service import EventService
from eventhub.services.stream_service import EventStreamService
from eventhub.dependencies.realtime import get_change_feed, get_attendance_locks
from eventhub.dependencies.repositories import (
    get_event_repository,
    get_attendance_repository,
)


def get_event_service(
    db: AsyncSession = Depends(get_db),
    event_repo: EventRepository = Depends(get_event_repository),
    attendance_repo: AttendanceRepository = Depends(get_attendance_repository),
    change_feed: ChangeFeed = Depends(get_change_feed),
) -> EventService:
    """EventService 의존성 주입"""
    return EventService(
        db=db,
        event_repo=event_repo,
        attendance_repo=attendance_repo,
        change_feed=change_feed,
    )


def get_attendance_store(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    change_feed: ChangeFeed = Depends(get_change_feed),
    locks: KeyedLocks = Depends(get_attendance_locks),
) -> AttendanceStore:
    """AttendanceStore 의존성 주입 (lock 레지스트리는 프로세스 공유)"""
    return AttendanceStore(
        session_factory=session_factory,
        change_feed=change_feed,
        locks=locks,
    )


def get_stream_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    change_feed: ChangeFeed = Depends(get_change_feed),
    attendance_store: AttendanceStore = Depends(get_attendance_store),
) -> EventStreamService:
    """EventStreamService 의존성 주입"""
    return EventStreamService(
        session_factory=session_factory,
        change_feed=change_feed,
        attendance_store=attendance_store,
    )
