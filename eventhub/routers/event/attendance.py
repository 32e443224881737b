from uuid import UUID
from fastapi import APIRouter, Depends

from eventhub.schemas.attendance import AttendanceStatusResponse, AttendanceUpdateRequest, AttendeeListResponse
from eventhub.services.attendance_store import AttendanceStore
from eventhub.services.event_service import EventService
from eventhub.dependencies.auth import get_current_user_id
from eventhub.dependencies.services import get_attendance_store, get_event_service


router = APIRouter(tags=["events-attendance"])


@router.put("/events/{event_id}/attendance", response_model=AttendanceStatusResponse)
async def set_attendance(
    event_id: UUID,
    request: AttendanceUpdateRequest,
    user_id: UUID | None = Depends(get_current_user_id),
    attendance_store: AttendanceStore = Depends(get_attendance_store),
) -> AttendanceStatusResponse:
    """
    RSVP 설정 API
    - 로그인 필요
    - 같은 상태로 반복 호출해도 결과 동일 (중복 레코드/알림 없음)
    """
    result = await attendance_store.set_status(event_id, user_id, request.status)
    return AttendanceStatusResponse(event_id=event_id, status=result)


@router.get("/events/{event_id}/attendance", response_model=AttendanceStatusResponse)
async def get_attendance(
    event_id: UUID,
    user_id: UUID | None = Depends(get_current_user_id),
    attendance_store: AttendanceStore = Depends(get_attendance_store),
) -> AttendanceStatusResponse:
    """내 RSVP 상태 조회 API (없으면 "none")"""
    result = await attendance_store.get_status(event_id, user_id)
    return AttendanceStatusResponse(event_id=event_id, status=result)


@router.get("/events/{event_id}/attendees", response_model=AttendeeListResponse)
async def list_attendees(
    event_id: UUID,
    event_service: EventService = Depends(get_event_service),
) -> AttendeeListResponse:
    """참석자 명단 조회 API (응답 순)"""
    return await event_service.get_attendees(event_id)
