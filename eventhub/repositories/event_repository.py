from datetime import datetime
from typing import List
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.models.event import Event
from eventhub.models.attendance import Attendee, AttendanceStatusType
from eventhub.schemas.filters import FilterCriteria, TimeWindow, ALL_CATEGORIES
from eventhub.exceptions import FetchFailedError, WriteConflictError, InternalError


class EventRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_event(self, event: Event) -> Event:
        """이벤트 생성 (commit은 Service에서)"""
        try:
            self.db.add(event)
            await self.db.flush()
            await self.db.refresh(event)
            return event
        except IntegrityError as e:
            raise WriteConflictError(
                message="Event creation failed",
                detail=f"Failed to create event: {str(e.orig)}"
            ) from e
        except OperationalError as e:
            raise InternalError(
                message="Database operation failed",
                detail="Failed to create event due to database error"
            ) from e

    async def get_by_id(self, event_id: UUID) -> Event | None:
        """이벤트 ID로 조회"""
        try:
            result = await self.db.execute(select(Event).where(Event.id == event_id))
        except DBAPIError as e:
            raise FetchFailedError(
                message="Event fetch failed",
                detail=f"Failed to load event {event_id}"
            ) from e
        return result.scalar_one_or_none()

    async def get_all(self) -> List[Event]:
        """필터 없는 전체 이벤트 컬렉션 (list view 스냅샷용)"""
        try:
            result = await self.db.execute(select(Event).order_by(Event.date.asc(), Event.id.asc()))
        except DBAPIError as e:
            raise FetchFailedError(
                message="Event fetch failed",
                detail="Failed to load event collection"
            ) from e
        return list(result.scalars().all())

    async def list_events(self, criteria: FilterCriteria, now: datetime) -> List[Event]:
        """
        필터 조건을 저장소 쿼리로 변환하여 조회
        - category 일치 (all이면 생략)
        - 시간 구간 (upcoming: date >= now, past: date < now)
        - 제목 검색은 FilterEngine에서만 (DB별 대소문자 처리 차이 방지)
        - upcoming/all: 날짜 오름차순, past: 날짜 내림차순 (동률은 id 순)
        """
        stmt = select(Event)

        if criteria.category != ALL_CATEGORIES:
            stmt = stmt.where(Event.category == criteria.category)

        if criteria.time_window == TimeWindow.UPCOMING:
            stmt = stmt.where(Event.date >= now)
        elif criteria.time_window == TimeWindow.PAST:
            stmt = stmt.where(Event.date < now)

        if criteria.time_window == TimeWindow.PAST:
            stmt = stmt.order_by(Event.date.desc(), Event.id.asc())
        else:
            stmt = stmt.order_by(Event.date.asc(), Event.id.asc())

        try:
            result = await self.db.execute(stmt)
        except DBAPIError as e:
            raise FetchFailedError(
                message="Event fetch failed",
                detail="Failed to query events"
            ) from e
        return list(result.scalars().all())

    async def get_events_by_creator(self, user_id: UUID) -> List[Event]:
        """사용자가 만든 이벤트 목록 (최근 날짜 순)"""
        stmt = (
            select(Event)
            .where(Event.created_by == user_id)
            .order_by(Event.date.desc(), Event.id.asc())
        )
        try:
            result = await self.db.execute(stmt)
        except DBAPIError as e:
            raise FetchFailedError(
                message="Event fetch failed",
                detail="Failed to load created events"
            ) from e
        return list(result.scalars().all())

    async def get_events_attending(self, user_id: UUID) -> List[Event]:
        """사용자가 attending 상태로 응답한 이벤트 목록"""
        stmt = (
            select(Event)
            .join(Attendee, Event.id == Attendee.event_id)
            .where(
                Attendee.user_id == user_id,
                Attendee.status == AttendanceStatusType.ATTENDING
            )
            .order_by(Event.date.asc(), Event.id.asc())
        )
        try:
            result = await self.db.execute(stmt)
        except DBAPIError as e:
            raise FetchFailedError(
                message="Event fetch failed",
                detail="Failed to load attending events"
            ) from e
        return list(result.scalars().all())
