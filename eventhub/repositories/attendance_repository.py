from typing import List
from uuid import UUID
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.db import utcnow
from eventhub.models.attendance import Attendee, AttendanceStatusType
from eventhub.exceptions import FetchFailedError, InternalError, WriteConflictError


class AttendanceRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_event_and_user(self, event_id: UUID, user_id: UUID) -> Attendee | None:
        """이벤트와 사용자로 참석 레코드 조회 (없으면 None)"""
        stmt = select(Attendee).where(
            Attendee.event_id == event_id,
            Attendee.user_id == user_id
        )
        try:
            result = await self.db.execute(stmt)
        except DBAPIError as e:
            raise FetchFailedError(
                message="Attendance fetch failed",
                detail=f"Failed to load attendance for event {event_id}"
            ) from e
        return result.scalar_one_or_none()

    async def create_attendee(self, attendee: Attendee) -> Attendee:
        """
        참석 레코드 생성
        - (event_id, user_id) 유니크 제약 위반 시 WriteConflictError
        """
        try:
            self.db.add(attendee)
            await self.db.flush()  # commit은 Service에서 수행
        except IntegrityError as e:
            raise WriteConflictError(
                message="Attendance write conflict",
                detail=f"Attendance for event {attendee.event_id} was created concurrently"
            ) from e
        except DBAPIError as e:
            raise InternalError(
                message="Database operation failed",
                detail=f"Failed to create attendance for event {attendee.event_id}"
            ) from e
        await self.db.refresh(attendee)
        return attendee

    async def update_status_if_changed(
        self, event_id: UUID, user_id: UUID, status: AttendanceStatusType
    ) -> Attendee | None:
        """
        상태가 다를 때만 조건부 UPDATE
        - WHERE event_id = :event_id AND user_id = :user_id AND status != :status
        - 이미 같은 상태이거나 레코드가 없으면 None 반환
        """
        stmt = (
            update(Attendee)
            .where(
                Attendee.event_id == event_id,
                Attendee.user_id == user_id,
                Attendee.status != status
            )
            .values(status=status, updated_at=utcnow())
            .returning(Attendee)
            .execution_options(synchronize_session="fetch")
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.flush()
        except IntegrityError as e:
            raise WriteConflictError(
                message="Attendance write conflict",
                detail=f"Attendance for event {event_id} was modified concurrently"
            ) from e
        except DBAPIError as e:
            raise InternalError(
                message="Database operation failed",
                detail=f"Failed to update attendance for event {event_id}"
            ) from e
        return result.scalar_one_or_none()

    async def get_all_by_event_id(self, event_id: UUID) -> List[Attendee]:
        """이벤트의 모든 참석 레코드 (생성 순, 동률은 id 순)"""
        stmt = (
            select(Attendee)
            .where(Attendee.event_id == event_id)
            .order_by(Attendee.created_at.asc(), Attendee.id.asc())
        )
        try:
            result = await self.db.execute(stmt)
        except DBAPIError as e:
            raise FetchFailedError(
                message="Attendance fetch failed",
                detail=f"Failed to load attendees for event {event_id}"
            ) from e
        return list(result.scalars().all())

    async def get_attending_by_event_ids(self, event_ids: List[UUID]) -> List[Attendee]:
        """여러 이벤트의 attending 레코드 조회 (list view 집계용)"""
        if not event_ids:
            return []
        stmt = select(Attendee).where(
            Attendee.event_id.in_(event_ids),
            Attendee.status == AttendanceStatusType.ATTENDING
        )
        try:
            result = await self.db.execute(stmt)
        except DBAPIError as e:
            raise FetchFailedError(
                message="Attendance fetch failed",
                detail="Failed to load attendance for event collection"
            ) from e
        return list(result.scalars().all())
