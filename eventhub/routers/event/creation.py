from uuid import UUID
from fastapi import APIRouter, Depends, status

from eventhub.schemas.event import EventCreateRequest, EventResponse
from eventhub.services.event_service import EventService
from eventhub.dependencies.auth import get_current_user_id
from eventhub.dependencies.services import get_event_service


router = APIRouter(tags=["events-creation"])


@router.post("/events", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    request: EventCreateRequest,
    user_id: UUID | None = Depends(get_current_user_id),
    event_service: EventService = Depends(get_event_service),
) -> EventResponse:
    """
    이벤트 생성 API
    - 날짜는 미래여야 함
    - 생성 후 목록을 보고 있는 클라이언트에 변경 알림
    """
    event = await event_service.create_event(request, creator_id=user_id)
    return EventResponse.model_validate(event)
