import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Callable, List, Literal, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventhub.db import utcnow
from eventhub.models.attendance import Attendee, AttendanceStatusType, NO_ATTENDANCE
from eventhub.models.event import Event
from eventhub.realtime.change_feed import ChangeFeed, ChangeNotification, Subscription, ViewScope
from eventhub.repositories.attendance_repository import AttendanceRepository
from eventhub.repositories.event_repository import EventRepository
from eventhub.schemas.attendance import AttendeeInfo
from eventhub.schemas.event import EventListItemResponse, EventResponse
from eventhub.schemas.filters import FilterCriteria
from eventhub.services.attendance_store import AttendanceStore
from eventhub.services.filter_engine import FilterEngine, FilteredEvent
from eventhub.exceptions import AppException, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    REFRESHING = "refreshing"
    CLOSED = "closed"


StateListener = Callable[["EventViewSession", SessionState], None]
ChangeListener = Callable[["EventViewSession"], None]
ErrorListener = Callable[["EventViewSession", AppException], None]


class EventViewSession(ABC):
    """
    열린 화면 하나에 대한 오케스트레이션 단위

    상태: LOADING → READY → (REFRESHING → READY)* → CLOSED
    - open(): 구독 후 초기 조회 (구독을 먼저 해야 조회 중 변경을 놓치지 않음)
    - 알림 수신 시 refresh() (세션 내 직렬화)
    - refresh 실패 시 이전 데이터 유지 + 호출자에게 실패 보고
    - close(): 동기적으로 구독 해제, 이후 알림 무시
    - reactivate(): 화면 재활성화 시 복구용 재조회 (유실된 알림 대비)
    """

    def __init__(
        self,
        scope: ViewScope,
        change_feed: ChangeFeed,
        on_state_change: Optional[StateListener] = None,
        on_change: Optional[ChangeListener] = None,
        on_error: Optional[ErrorListener] = None,
    ):
        self.scope = scope
        self.change_feed = change_feed
        self.on_state_change = on_state_change
        self.on_change = on_change
        self.on_error = on_error

        self.state = SessionState.LOADING
        self.last_error: Optional[AppException] = None
        self.revision = 0
        self.loaded_at: Optional[datetime] = None

        self._loaded = False
        self._subscription: Optional[Subscription] = None
        self._refresh_lock = asyncio.Lock()

    @property
    def is_closed(self) -> bool:
        return self.state == SessionState.CLOSED

    @property
    def is_stale(self) -> bool:
        """마지막 새로고침이 실패하여 이전 데이터를 보여주는 중인지"""
        return self._loaded and self.last_error is not None

    async def open(self) -> "EventViewSession":
        """구독 등록 후 초기 조회 (실패 시 LOADING 유지 + FetchFailedError)"""
        if self.is_closed:
            raise ValidationError(message="Session closed", detail=f"View session for {self.scope} is closed")
        if self._subscription is None:
            self._subscription = self.change_feed.subscribe(self.scope, self._handle_notification)
        logger.info(f"View session opened for {self.scope}")
        await self.refresh()
        return self

    async def refresh(self) -> None:
        """
        권위 있는 상태를 다시 조회하여 뷰 재계산
        - READY → REFRESHING → READY
        - 실패 시 이전 데이터 유지하고 예외 재발생
        """
        async with self._refresh_lock:
            if self.is_closed:
                return
            if self._loaded:
                self._set_state(SessionState.REFRESHING)
            try:
                snapshot = await self._fetch()
            except AppException as exc:
                if self.is_closed:
                    return
                self.last_error = exc
                self._set_state(SessionState.READY if self._loaded else SessionState.LOADING)
                logger.warning(f"View session fetch failed for {self.scope}: {exc.message}")
                raise

            # 조회 도중 닫힌 세션에는 결과를 반영하지 않음
            if self.is_closed:
                return
            self._apply(snapshot)
            self._loaded = True
            self.last_error = None
            self.revision += 1
            self.loaded_at = utcnow()
            self._set_state(SessionState.READY)

        if self.on_change is not None:
            self.on_change(self)

    async def reactivate(self) -> None:
        """복구용 폴링: 알림이 유실되었더라도 권위 있는 상태로 수렴"""
        if self.is_closed:
            return
        logger.debug(f"View session reactivated for {self.scope}")
        await self.refresh()

    def close(self) -> None:
        """세션 종료 (동기적으로 구독 해제 후 반환)"""
        if self.is_closed:
            return
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self._set_state(SessionState.CLOSED)
        logger.info(f"View session closed for {self.scope}")

    async def _handle_notification(self, notification: ChangeNotification) -> None:
        """알림은 재조회 트리거로만 사용 (payload를 상태로 쓰지 않음)"""
        if self.is_closed:
            return
        logger.debug(
            f"View session {self.scope} notified: {notification.change_kind.value} (seq={notification.sequence})"
        )
        try:
            await self.refresh()
        except AppException as exc:
            if self.on_error is not None:
                self.on_error(self, exc)
            else:
                logger.error(f"Unreported refresh failure for {self.scope}: {exc.detail}")

    def _set_state(self, state: SessionState) -> None:
        if self.state == state:
            return
        self.state = state
        if self.on_state_change is not None:
            self.on_state_change(self, state)

    @abstractmethod
    async def _fetch(self):
        """권위 있는 상태 조회 (세션 lock 안에서 호출)"""

    @abstractmethod
    def _apply(self, snapshot) -> None:
        """조회 결과를 세션 상태에 반영"""

    @abstractmethod
    def snapshot(self) -> dict:
        """현재 상태를 직렬화 가능한 dict로 반환 (SSE 전송용)"""


class EventDetailSession(EventViewSession):
    """단일 이벤트 상세 화면: 이벤트 + 참석자 명단 + 내 RSVP 상태"""

    def __init__(
        self,
        event_id: UUID,
        user_id: Optional[UUID],
        session_factory: async_sessionmaker[AsyncSession],
        attendance_store: AttendanceStore,
        change_feed: ChangeFeed,
        **listeners,
    ):
        super().__init__(ViewScope.event(event_id), change_feed, **listeners)
        self.event_id = event_id
        self.user_id = user_id
        self.session_factory = session_factory
        self.attendance_store = attendance_store

        self.event: Optional[Event] = None
        self._attendees: List[Attendee] = []
        self._current_status: AttendanceStatusType | Literal["none"] = NO_ATTENDANCE

    @property
    def attendee_list(self) -> List[Attendee]:
        return list(self._attendees)

    @property
    def attending(self) -> List[Attendee]:
        return [a for a in self._attendees if a.status == AttendanceStatusType.ATTENDING]

    @property
    def current_status(self) -> AttendanceStatusType | Literal["none"]:
        return self._current_status

    async def set_status(self, status: AttendanceStatusType | str) -> AttendanceStatusType:
        """RSVP 변경 (결과는 ChangeFeed 알림을 통해 명단에 반영)"""
        if self.is_closed:
            raise ValidationError(message="Session closed", detail=f"View session for {self.scope} is closed")
        result = await self.attendance_store.set_status(self.event_id, self.user_id, status)
        self._current_status = result
        return result

    async def _fetch(self):
        async with self.session_factory() as db:
            event = await EventRepository(db).get_by_id(self.event_id)
        if event is None:
            raise NotFoundError(
                message="Event not found",
                detail=f"Event with id {self.event_id} not found"
            )
        attendees = await self.attendance_store.list_attendees(self.event_id)
        status = await self.attendance_store.get_status(self.event_id, self.user_id)
        return event, attendees, status

    def _apply(self, snapshot) -> None:
        self.event, self._attendees, self._current_status = snapshot

    def snapshot(self) -> dict:
        return {
            "event": EventResponse.model_validate(self.event).model_dump(mode="json") if self.event else None,
            "attending_count": len(self.attending),
            "attendees": [AttendeeInfo.model_validate(a).model_dump(mode="json") for a in self._attendees],
            "my_status": self._current_status.value
            if isinstance(self._current_status, AttendanceStatusType)
            else self._current_status,
        }


class EventListSession(EventViewSession):
    """
    이벤트 목록 화면
    - 필터 없는 컬렉션 스냅샷을 조회한 뒤 FilterEngine으로 평가
    - update_criteria는 캐시된 스냅샷으로 재평가 (재조회 없음)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        change_feed: ChangeFeed,
        criteria: Optional[FilterCriteria] = None,
        filter_engine: Optional[FilterEngine] = None,
        clock: Callable[[], datetime] = utcnow,
        **listeners,
    ):
        super().__init__(ViewScope.collection(), change_feed, **listeners)
        self.session_factory = session_factory
        self.criteria = criteria or FilterCriteria()
        self.filter_engine = filter_engine or FilterEngine()
        self.clock = clock

        self._events: List[Event] = []
        self._attendance: List[Attendee] = []
        self._filtered: List[FilteredEvent] = []

    @property
    def filtered_events(self) -> List[FilteredEvent]:
        return list(self._filtered)

    def update_criteria(self, criteria: FilterCriteria) -> List[FilteredEvent]:
        """필터 변경 후 현재 스냅샷으로 재평가"""
        if self.is_closed:
            raise ValidationError(message="Session closed", detail="View session for events is closed")
        self.criteria = criteria
        self._evaluate()
        if self._loaded and self.on_change is not None:
            self.on_change(self)
        return self.filtered_events

    async def _fetch(self):
        async with self.session_factory() as db:
            events = await EventRepository(db).get_all()
            attendance = await AttendanceRepository(db).get_attending_by_event_ids(
                [event.id for event in events]
            )
        return events, attendance

    def _apply(self, snapshot) -> None:
        self._events, self._attendance = snapshot
        self._evaluate()

    def _evaluate(self) -> None:
        self._filtered = self.filter_engine.evaluate(
            self._events, self._attendance, self.criteria, now=self.clock()
        )

    def snapshot(self) -> dict:
        return {
            "criteria": self.criteria.model_dump(mode="json"),
            "events": [
                EventListItemResponse.from_filtered(item).model_dump(mode="json")
                for item in self._filtered
            ],
        }
