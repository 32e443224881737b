import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Literal, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventhub.models.attendance import Attendee, AttendanceStatusType, NO_ATTENDANCE
from eventhub.realtime.change_feed import ChangeFeed, ChangeKind, ViewScope
from eventhub.repositories.attendance_repository import AttendanceRepository
from eventhub.repositories.event_repository import EventRepository
from eventhub.exceptions import NotAuthenticatedError, NotFoundError, ValidationError, WriteConflictError
from eventhub.utils.transaction import transaction

logger = logging.getLogger(__name__)

AttendanceKey = Tuple[UUID, UUID]

# WriteConflict 자동 재시도 횟수 (최초 시도 제외)
WRITE_CONFLICT_RETRIES = 1


class KeyedLocks:
    """
    (event_id, user_id) 키별 asyncio.Lock
    - asyncio.Lock은 FIFO이므로 먼저 호출된 set_status가 먼저 커밋됨
    - 대기자가 없으면 lock 제거
    """

    def __init__(self):
        self._locks: Dict[AttendanceKey, asyncio.Lock] = {}
        self._waiters: Dict[AttendanceKey, int] = {}

    @asynccontextmanager
    async def hold(self, key: AttendanceKey) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


def parse_status(status: AttendanceStatusType | str) -> AttendanceStatusType:
    if isinstance(status, AttendanceStatusType):
        return status
    try:
        return AttendanceStatusType(status)
    except ValueError:
        allowed = ", ".join(s.value for s in AttendanceStatusType)
        raise ValidationError(
            message="Invalid attendance status",
            detail=f"Status must be one of: {allowed} (got {status!r})"
        )


class AttendanceStore:
    """
    (event, user)별 RSVP 상태의 단일 writer
    - set_status: upsert (있으면 상태 변경, 없으면 생성), 같은 상태 재요청은 no-op
    - 같은 키의 쓰기는 KeyedLocks로 직렬화 (last-commit-wins)
    - 커밋 이후에만 ChangeFeed publish (상태가 실제로 바뀐 경우만)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        change_feed: ChangeFeed,
        locks: KeyedLocks | None = None,
    ):
        self.session_factory = session_factory
        self.change_feed = change_feed
        self.locks = locks or KeyedLocks()

    async def set_status(
        self,
        event_id: UUID,
        user_id: UUID | None,
        status: AttendanceStatusType | str,
    ) -> AttendanceStatusType:
        """RSVP 상태 설정 후 결과 상태 반환"""
        if user_id is None:
            raise NotAuthenticatedError(
                message="Not authenticated",
                detail="Please login to RSVP"
            )
        status = parse_status(status)

        async with self.locks.hold((event_id, user_id)):
            attempt = 0
            while True:
                try:
                    changed = await self._upsert(event_id, user_id, status)
                    break
                except WriteConflictError:
                    if attempt >= WRITE_CONFLICT_RETRIES:
                        logger.warning(
                            f"Attendance write conflict persisted (event={event_id}, user={user_id})"
                        )
                        raise
                    attempt += 1
                    logger.info(
                        f"Attendance write conflict, retrying (event={event_id}, user={user_id})"
                    )

        if changed:
            self.change_feed.publish(ViewScope.event(event_id), ChangeKind.ATTENDANCE_CHANGED)
            self.change_feed.publish(ViewScope.collection(), ChangeKind.ATTENDANCE_CHANGED)
        else:
            logger.debug(f"Attendance unchanged (event={event_id}, user={user_id}, status={status.value})")
        return status

    async def _upsert(self, event_id: UUID, user_id: UUID, status: AttendanceStatusType) -> bool:
        """
        한 트랜잭션 안에서 upsert 수행
        Returns:
            True: 생성 또는 상태 변경됨, False: 이미 같은 상태
        """
        async with self.session_factory() as db:
            async with transaction(db):
                event = await EventRepository(db).get_by_id(event_id)
                if event is None:
                    raise NotFoundError(
                        message="Event not found",
                        detail=f"Event with id {event_id} not found"
                    )

                attendance_repo = AttendanceRepository(db)
                existing = await attendance_repo.get_by_event_and_user(event_id, user_id)

                if existing is None:
                    await attendance_repo.create_attendee(
                        Attendee(event_id=event_id, user_id=user_id, status=status)
                    )
                    logger.info(f"Attendance created (event={event_id}, user={user_id}, status={status.value})")
                    return True

                if existing.status == status:
                    return False

                updated = await attendance_repo.update_status_if_changed(event_id, user_id, status)
                if updated is not None:
                    logger.info(f"Attendance updated (event={event_id}, user={user_id}, status={status.value})")
                return updated is not None

    async def get_status(
        self, event_id: UUID, user_id: UUID | None
    ) -> AttendanceStatusType | Literal["none"]:
        """
        현재 RSVP 상태 조회
        - 레코드가 없거나 사용자 정보가 없으면 "none"
        - 저장소 I/O 실패는 FetchFailedError (부재와 구분)
        """
        if user_id is None:
            return NO_ATTENDANCE
        async with self.session_factory() as db:
            attendee = await AttendanceRepository(db).get_by_event_and_user(event_id, user_id)
        return attendee.status if attendee else NO_ATTENDANCE

    async def list_attendees(self, event_id: UUID) -> List[Attendee]:
        """이벤트 참석자 명단 (생성 순)"""
        async with self.session_factory() as db:
            return await AttendanceRepository(db).get_all_by_event_id(event_id)
