from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.db import get_db
from eventhub.repositories.event_repository import EventRepository
from eventhub.repositories.attendance_repository import AttendanceRepository


def get_event_repository(db: AsyncSession = Depends(get_db)) -> EventRepository:
    """EventRepository 의존성 주입"""
    return EventRepository(db)


def get_attendance_repository(db: AsyncSession = Depends(get_db)) -> AttendanceRepository:
    """AttendanceRepository 의존성 주입"""
    return AttendanceRepository(db)
