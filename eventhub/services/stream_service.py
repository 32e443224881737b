import asyncio
import json
import logging
from os import getenv
from typing import AsyncIterator, Awaitable, Callable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventhub.db import utcnow
from eventhub.realtime.change_feed import ChangeFeed
from eventhub.schemas.filters import FilterCriteria
from eventhub.schemas.stream import ViewSnapshotMessage
from eventhub.services.attendance_store import AttendanceStore
from eventhub.services.view_session import EventDetailSession, EventListSession, EventViewSession
from eventhub.exceptions import AppException

logger = logging.getLogger(__name__)

DEFAULT_HEARTBEAT_SECONDS = float(getenv("STREAM_HEARTBEAT_SECONDS", "30"))
DEFAULT_RETRY_MS = int(getenv("STREAM_RETRY_MS", "5000"))


class EventStreamService:
    """
    SSE 스트림 서비스
    - 연결 하나당 EventViewSession 하나 (연결 종료 시 세션 close)
    - 세션이 Ready가 될 때마다 현재 스냅샷 전송
    - heartbeat 주기마다 reactivate()로 복구용 재조회 (유실된 알림 대비)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        change_feed: ChangeFeed,
        attendance_store: AttendanceStore,
        heartbeat_seconds: float = DEFAULT_HEARTBEAT_SECONDS,
        retry_ms: int = DEFAULT_RETRY_MS,
    ):
        self.session_factory = session_factory
        self.change_feed = change_feed
        self.attendance_store = attendance_store
        self.heartbeat_seconds = heartbeat_seconds
        self.retry_ms = retry_ms

    def detail_session(self, event_id: UUID, user_id: Optional[UUID]) -> EventDetailSession:
        return EventDetailSession(
            event_id=event_id,
            user_id=user_id,
            session_factory=self.session_factory,
            attendance_store=self.attendance_store,
            change_feed=self.change_feed,
        )

    def list_session(self, criteria: FilterCriteria) -> EventListSession:
        return EventListSession(
            session_factory=self.session_factory,
            change_feed=self.change_feed,
            criteria=criteria,
        )

    async def stream(
        self,
        session: EventViewSession,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> AsyncIterator[str]:
        """세션 상태 변화를 SSE 메시지로 변환하는 생성기"""
        queue: asyncio.Queue[Optional[AppException]] = asyncio.Queue()
        session.on_change = lambda _session: queue.put_nowait(None)
        session.on_error = lambda _session, exc: queue.put_nowait(exc)

        yield self.format_retry(self.retry_ms)
        try:
            try:
                await session.open()
            except AppException as exc:
                yield self.format_error(exc)
                return

            while True:
                if is_disconnected is not None and await is_disconnected():
                    logger.info(f"Client disconnected from {session.scope}")
                    break

                try:
                    item = await asyncio.wait_for(queue.get(), timeout=self.heartbeat_seconds)
                except asyncio.TimeoutError:
                    yield self.format_heartbeat()
                    try:
                        await session.reactivate()
                    except AppException as exc:
                        yield self.format_error(exc)
                    continue

                # 쌓인 변경 알림은 하나로 합쳐 최신 스냅샷만 전송
                errors = [item] if item is not None else []
                while not queue.empty():
                    pending = queue.get_nowait()
                    if pending is not None:
                        errors.append(pending)
                for exc in errors:
                    yield self.format_error(exc)
                yield self.format_snapshot(session)
        except asyncio.CancelledError:
            logger.info(f"Event stream cancelled: {session.scope}")
            raise
        finally:
            session.close()

    def format_snapshot(self, session: EventViewSession) -> str:
        message = ViewSnapshotMessage(
            scope=str(session.scope),
            state=session.state.value,
            revision=session.revision,
            data=session.snapshot(),
            stale=session.is_stale,
            emitted_at=utcnow(),
        )
        return self.format_sse_message(
            event_id=f"{session.scope}:{session.revision}",
            data=message.model_dump(mode="json"),
            event="snapshot",
        )

    def format_error(self, exc: AppException) -> str:
        return self.format_sse_message(
            event_id=None,
            data={"error": exc.__class__.__name__, "message": exc.message, "detail": exc.detail},
            event="error",
        )

    @staticmethod
    def format_sse_message(event_id: Optional[str], data: dict, event: Optional[str] = None) -> str:
        """
        SSE 메시지 형식으로 변환

        Returns:
            SSE 형식 문자열: "id: <event_id>\nevent: <event>\ndata: {...}\n\n"
        """
        lines = []
        if event_id is not None:
            lines.append(f"id: {event_id}")
        if event is not None:
            lines.append(f"event: {event}")
        lines.append(f"data: {json.dumps(data, default=str)}")
        return "\n".join(lines) + "\n\n"

    @staticmethod
    def format_heartbeat() -> str:
        """Heartbeat 메시지 생성: ": ping\n\n" """
        return ": ping\n\n"

    @staticmethod
    def format_retry(retry_ms: int = DEFAULT_RETRY_MS) -> str:
        """Retry 헤더 생성: "retry: <retry_ms>\n\n" """
        return f"retry: {retry_ms}\n\n"
