from uuid import UUID
from fastapi import APIRouter, Depends

from eventhub.schemas.event import EventListItemResponse, EventListResponse, MyEventsResponse
from eventhub.schemas.filters import FilterCriteria
from eventhub.services.event_service import EventService
from eventhub.dependencies.auth import get_current_user_id
from eventhub.dependencies.filters import get_filter_criteria
from eventhub.dependencies.services import get_event_service


router = APIRouter(tags=["events-listing"])


@router.get("/events", response_model=EventListResponse)
async def list_events(
    criteria: FilterCriteria = Depends(get_filter_criteria),
    event_service: EventService = Depends(get_event_service),
) -> EventListResponse:
    """
    이벤트 목록 조회 API
    - category / time_window / search 복합 필터
    - upcoming: 날짜 오름차순, past: 날짜 내림차순
    - 각 이벤트의 attending 인원 수 포함
    """
    items = await event_service.list_events(criteria)
    return EventListResponse(
        criteria=criteria,
        events=[EventListItemResponse.from_filtered(item) for item in items],
    )


@router.get("/events/mine", response_model=MyEventsResponse)
async def get_my_events(
    user_id: UUID | None = Depends(get_current_user_id),
    event_service: EventService = Depends(get_event_service),
) -> MyEventsResponse:
    """내가 만든 이벤트 / 참석 중인 이벤트 조회 API"""
    return await event_service.get_my_events(user_id)
