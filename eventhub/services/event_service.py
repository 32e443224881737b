import logging
from datetime import datetime
from typing import Callable, List
from uuid import UUID

import pydantic
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.db import utcnow
from eventhub.models.attendance import NO_ATTENDANCE
from eventhub.models.event import Event
from eventhub.realtime.change_feed import ChangeFeed, ChangeKind, ViewScope
from eventhub.repositories.attendance_repository import AttendanceRepository
from eventhub.repositories.event_repository import EventRepository
from eventhub.schemas.attendance import AttendeeInfo, AttendeeListResponse
from eventhub.schemas.event import (
    EventCreateRequest,
    EventDetailResponse,
    EventResponse,
    MyEventsResponse,
)
from eventhub.schemas.filters import FilterCriteria
from eventhub.services.filter_engine import FilterEngine, FilteredEvent, as_utc
from eventhub.exceptions import NotAuthenticatedError, NotFoundError, ValidationError
from eventhub.utils.transaction import transaction

logger = logging.getLogger(__name__)


class EventService:
    def __init__(
        self,
        db: AsyncSession,
        event_repo: EventRepository,
        attendance_repo: AttendanceRepository,
        change_feed: ChangeFeed,
        filter_engine: FilterEngine | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.event_repo = event_repo
        self.attendance_repo = attendance_repo
        self.change_feed = change_feed
        self.filter_engine = filter_engine or FilterEngine()
        self.clock = clock

    async def create_event(
        self,
        request: EventCreateRequest | dict,
        creator_id: UUID | None
    ) -> Event:
        """
        이벤트 생성
        - 필드 길이/미래 날짜 검증은 쓰기 전에 수행 (실패 시 저장소에 도달하지 않음)
        - 커밋 후 컬렉션 scope에 event.created 알림
        """
        if creator_id is None:
            raise NotAuthenticatedError(
                message="Not authenticated",
                detail="Please login to create an event"
            )
        request = self._validate_create_request(request)

        event = Event(
            title=request.title,
            description=request.description,
            date=as_utc(request.date),
            location=request.location,
            category=request.category,
            image_url=request.image_url,
            created_by=creator_id,
        )
        async with transaction(self.db):
            result = await self.event_repo.create_event(event)

        logger.info(f"Event created: {result.id} by {creator_id}")
        self.change_feed.publish(ViewScope.collection(), ChangeKind.EVENT_CREATED)
        return result

    def _validate_create_request(self, request: EventCreateRequest | dict) -> EventCreateRequest:
        if not isinstance(request, EventCreateRequest):
            try:
                request = EventCreateRequest.model_validate(request)
            except pydantic.ValidationError as e:
                fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
                raise ValidationError(
                    message="Invalid event",
                    detail=f"Invalid fields: {fields}"
                ) from e

        if as_utc(request.date) <= self.clock():
            raise ValidationError(
                message="Invalid event date",
                detail="Event date must be in the future"
            )
        return request

    async def get_event(self, event_id: UUID) -> Event:
        """이벤트 조회 (없으면 NotFoundError)"""
        event = await self.event_repo.get_by_id(event_id)
        if not event:
            raise NotFoundError(
                message="Event not found",
                detail=f"Event with id {event_id} not found"
            )
        return event

    async def list_events(self, criteria: FilterCriteria) -> List[FilteredEvent]:
        """
        필터링된 이벤트 목록 + attending 인원 수
        - 저장소에서 1차 필터 후 FilterEngine으로 최종 평가 (같은 now 사용)
        """
        now = self.clock()
        events = await self.event_repo.list_events(criteria, now)
        attendance = await self.attendance_repo.get_attending_by_event_ids(
            [event.id for event in events]
        )
        return self.filter_engine.evaluate(events, attendance, criteria, now=now)

    async def get_event_detail(self, event_id: UUID, user_id: UUID | None) -> EventDetailResponse:
        """이벤트 상세: 참석자 명단(생성 순)과 현재 사용자의 응답 상태"""
        event = await self.get_event(event_id)
        attendees = await self.attendance_repo.get_all_by_event_id(event_id)

        my_status = NO_ATTENDANCE
        if user_id is not None:
            mine = next((a for a in attendees if a.user_id == user_id), None)
            if mine is not None:
                my_status = mine.status

        counts = self.filter_engine.count_attending(attendees)
        return EventDetailResponse(
            event=EventResponse.model_validate(event),
            is_past=as_utc(event.date) < self.clock(),
            attending_count=counts.get(event_id, 0),
            attendees=[AttendeeInfo.model_validate(a) for a in attendees],
            my_status=my_status,
        )

    async def get_my_events(self, user_id: UUID | None) -> MyEventsResponse:
        """내가 만든 이벤트와 참석(attending) 중인 이벤트"""
        if user_id is None:
            raise NotAuthenticatedError(
                message="Not authenticated",
                detail="Please login to view your events"
            )
        created = await self.event_repo.get_events_by_creator(user_id)
        attending = await self.event_repo.get_events_attending(user_id)
        return MyEventsResponse(
            created=[EventResponse.model_validate(e) for e in created],
            attending=[EventResponse.model_validate(e) for e in attending],
        )

    async def get_attendees(self, event_id: UUID) -> AttendeeListResponse:
        """참석자 명단 (응답 순) + attending 인원 수"""
        await self.get_event(event_id)
        attendees = await self.attendance_repo.get_all_by_event_id(event_id)
        counts = self.filter_engine.count_attending(attendees)
        return AttendeeListResponse(
            event_id=event_id,
            attending_count=counts.get(event_id, 0),
            attendees=[AttendeeInfo.model_validate(a) for a in attendees],
        )
