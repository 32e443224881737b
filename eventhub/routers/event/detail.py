from uuid import UUID
from fastapi import APIRouter, Depends

from eventhub.schemas.event import EventDetailResponse
from eventhub.services.event_service import EventService
from eventhub.dependencies.auth import get_current_user_id
from eventhub.dependencies.services import get_event_service


router = APIRouter(tags=["events-detail"])


@router.get("/events/{event_id}", response_model=EventDetailResponse)
async def get_event_detail(
    event_id: UUID,
    user_id: UUID | None = Depends(get_current_user_id),
    event_service: EventService = Depends(get_event_service),
) -> EventDetailResponse:
    """
    이벤트 상세 조회 API
    - 참석자 명단 (응답 순)
    - 현재 사용자의 RSVP 상태 (없거나 익명이면 "none")
    """
    return await event_service.get_event_detail(event_id=event_id, user_id=user_id)
