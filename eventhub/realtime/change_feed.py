"""
Scoped change notifications

Writers publish a tagged `{scope, change_kind}` notification after commit.
Notifications never carry row data: subscribers use them only as a trigger to
re-fetch authoritative state from the store.
"""
import asyncio
import itertools
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional
from uuid import UUID

from eventhub.db import utcnow

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    ATTENDANCE_CHANGED = "attendance.changed"
    EVENT_CREATED = "event.created"


@dataclass(frozen=True)
class ViewScope:
    """구독 범위: 단일 이벤트(detail) 또는 전체 컬렉션(list)"""
    event_id: Optional[UUID] = None

    @classmethod
    def event(cls, event_id: UUID) -> "ViewScope":
        return cls(event_id=event_id)

    @classmethod
    def collection(cls) -> "ViewScope":
        return cls(event_id=None)

    @property
    def is_collection(self) -> bool:
        return self.event_id is None

    def __str__(self) -> str:
        return "events" if self.is_collection else f"event:{self.event_id}"


@dataclass(frozen=True)
class ChangeNotification:
    scope: ViewScope
    change_kind: ChangeKind
    sequence: int
    committed_at: datetime = field(default_factory=utcnow)


Handler = Callable[[ChangeNotification], Awaitable[None]]


class Subscription:
    """
    구독 취소 토큰
    - 구독자마다 FIFO 큐 + 전달 태스크 1개 (scope 내 커밋 순서 보장)
    - cancel()이 반환된 이후에는 큐에 남은 알림도 전달하지 않음
    """

    def __init__(self, feed: "ChangeFeed", scope: ViewScope, handler: Handler):
        self.id = next(feed._ids)
        self.scope = scope
        self._feed = feed
        self._handler = handler
        self._queue: asyncio.Queue[ChangeNotification] = asyncio.Queue()
        self._cancelled = False
        self._loop = asyncio.get_running_loop()
        self._task = self._loop.create_task(self._deliver(), name=f"change-feed-{self.id}")

    @property
    def active(self) -> bool:
        return not self._cancelled

    def _enqueue(self, notification: ChangeNotification) -> None:
        if self._cancelled:
            return
        if self._loop.is_closed():
            return
        # 호출 스레드와 무관하게 같은 경로로 적재 (publish 순서 유지)
        self._loop.call_soon_threadsafe(self._put, notification)

    def _put(self, notification: ChangeNotification) -> None:
        if not self._cancelled:
            self._queue.put_nowait(notification)

    async def _deliver(self) -> None:
        while True:
            notification = await self._queue.get()
            if self._cancelled:
                return
            try:
                await self._handler(notification)
            except asyncio.CancelledError:
                raise
            except Exception:
                # 구독자 한 곳의 실패가 다른 알림 전달을 막지 않도록 로깅만 수행
                logger.exception(
                    f"Change handler failed (subscription={self.id}, scope={self.scope}, "
                    f"kind={notification.change_kind.value}, seq={notification.sequence})"
                )
            if self._cancelled:
                return

    def cancel(self) -> None:
        """구독 해제 (여러 번 호출해도 안전)"""
        if self._cancelled:
            return
        self._cancelled = True
        self._feed._unregister(self)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            # 핸들러 내부에서 스스로 취소하는 경우 자기 태스크는 루프 종료로 끝남
            if asyncio.current_task() is not self._task:
                self._task.cancel()
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._task.cancel)


class ChangeFeed:
    """
    scope별 구독 테이블을 가진 publish/subscribe 채널
    - 프로세스 전역 싱글톤이 아닌 주입 가능한 인스턴스 (테스트에서 여러 개 생성 가능)
    - subscribe/unsubscribe/publish는 lock으로 보호 (스레드 안전)
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: Dict[ViewScope, Dict[int, Subscription]] = {}
        self._ids = itertools.count(1)
        self._sequence = itertools.count(1)

    def subscribe(self, scope: ViewScope, handler: Handler) -> Subscription:
        """scope에 대한 핸들러 등록 (실행 중인 이벤트 루프 안에서 호출)"""
        subscription = Subscription(self, scope, handler)
        with self._lock:
            self._subscriptions.setdefault(scope, {})[subscription.id] = subscription
        logger.debug(f"Subscribed {subscription.id} to {scope}")
        return subscription

    def _unregister(self, subscription: Subscription) -> None:
        with self._lock:
            table = self._subscriptions.get(subscription.scope)
            if table is None:
                return
            table.pop(subscription.id, None)
            if not table:
                del self._subscriptions[subscription.scope]
        logger.debug(f"Unsubscribed {subscription.id} from {subscription.scope}")

    def publish(self, scope: ViewScope, change_kind: ChangeKind) -> ChangeNotification:
        """
        커밋 이후 호출: scope에 등록된 모든 구독자에게 알림
        - 핸들러 실행을 기다리지 않음 (각 구독자의 큐에 적재)
        - sequence 부여와 큐 적재를 같은 lock 안에서 수행하여 순서 보장
        """
        with self._lock:
            notification = ChangeNotification(
                scope=scope,
                change_kind=change_kind,
                sequence=next(self._sequence),
            )
            targets = list(self._subscriptions.get(scope, {}).values())
            for subscription in targets:
                subscription._enqueue(notification)

        logger.info(
            f"Published {change_kind.value} to {scope} "
            f"(seq={notification.sequence}, subscribers={len(targets)})"
        )
        return notification

    def subscriber_count(self, scope: ViewScope) -> int:
        with self._lock:
            return len(self._subscriptions.get(scope, {}))

    def close(self) -> None:
        """앱 종료 시 모든 구독 해제"""
        with self._lock:
            subscriptions = [
                subscription
                for table in self._subscriptions.values()
                for subscription in table.values()
            ]
        for subscription in subscriptions:
            subscription.cancel()
