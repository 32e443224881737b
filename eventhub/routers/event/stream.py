import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from eventhub.schemas.filters import FilterCriteria
from eventhub.services.stream_service import EventStreamService
from eventhub.dependencies.auth import get_current_user_id
from eventhub.dependencies.filters import get_filter_criteria
from eventhub.dependencies.services import get_stream_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events-stream"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # nginx 프록시 버퍼링 방지
}


@router.get("/events/stream")
async def stream_event_list(
    request: Request,
    criteria: FilterCriteria = Depends(get_filter_criteria),
    stream_service: EventStreamService = Depends(get_stream_service),
):
    """
    이벤트 목록 SSE 스트림
    - 이벤트 생성/RSVP 변경 시 필터링된 목록 스냅샷 전송
    - heartbeat마다 복구용 재조회
    """
    session = stream_service.list_session(criteria)
    logger.info(f"List stream opened ({criteria.model_dump(mode='json')})")
    return StreamingResponse(
        stream_service.stream(session, request.is_disconnected),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/events/{event_id}/stream")
async def stream_event_detail(
    event_id: UUID,
    request: Request,
    user_id: UUID | None = Depends(get_current_user_id),
    stream_service: EventStreamService = Depends(get_stream_service),
):
    """
    이벤트 상세 SSE 스트림
    - 참석자 변경 시 명단 + 내 상태 스냅샷 전송
    - 재연결 시 새 세션이 초기 조회부터 다시 수행 (Last-Event-ID 불필요)
    """
    session = stream_service.detail_session(event_id, user_id)
    logger.info(f"Detail stream opened for event {event_id} (user={user_id})")
    return StreamingResponse(
        stream_service.stream(session, request.is_disconnected),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
