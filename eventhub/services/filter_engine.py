from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Protocol
from uuid import UUID

from eventhub.models.attendance import AttendanceStatusType
from eventhub.models.event import EventCategoryType
from eventhub.schemas.filters import ALL_CATEGORIES, FilterCriteria, TimeWindow


class EventLike(Protocol):
    id: UUID
    title: str
    date: datetime
    category: EventCategoryType


class AttendanceLike(Protocol):
    event_id: UUID
    status: AttendanceStatusType


@dataclass(frozen=True)
class FilteredEvent:
    event: EventLike
    attending_count: int


def as_utc(value: datetime) -> datetime:
    """naive datetime은 UTC로 간주"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class FilterEngine:
    """
    이벤트 컬렉션에 대한 복합 필터 평가 (순수 함수)
    - now는 평가 1회당 한 번만 결정 (경계 이벤트가 스캔 도중 분류가 바뀌지 않도록)
    - 같은 입력 + 같은 now → 같은 순서의 결과
    """

    def evaluate(
        self,
        events: Iterable[EventLike],
        attendance: Iterable[AttendanceLike],
        criteria: FilterCriteria,
        now: Optional[datetime] = None,
    ) -> List[FilteredEvent]:
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)
        search = criteria.normalized_search().casefold()

        # 중복 제거 (같은 id는 처음 등장한 것만)
        seen: set[UUID] = set()
        candidates: List[EventLike] = []
        for event in events:
            if event.id in seen:
                continue
            seen.add(event.id)

            if criteria.category != ALL_CATEGORIES and event.category != criteria.category:
                continue
            if not self._in_window(as_utc(event.date), criteria.time_window, now):
                continue
            if search and search not in event.title.casefold():
                continue
            candidates.append(event)

        descending = criteria.time_window == TimeWindow.PAST
        # id 오름차순으로 먼저 정렬 후 날짜로 안정 정렬 → 동률은 항상 id 순
        candidates.sort(key=lambda e: str(e.id))
        candidates.sort(key=lambda e: as_utc(e.date), reverse=descending)

        counts = self.count_attending(attendance, {event.id for event in candidates})
        return [FilteredEvent(event=event, attending_count=counts.get(event.id, 0)) for event in candidates]

    @staticmethod
    def _in_window(date: datetime, window: TimeWindow, now: datetime) -> bool:
        if window == TimeWindow.UPCOMING:
            return date >= now
        if window == TimeWindow.PAST:
            return date < now
        return True

    @staticmethod
    def count_attending(
        attendance: Iterable[AttendanceLike], event_ids: Optional[set[UUID]] = None
    ) -> Counter:
        """attending 상태 레코드 수를 이벤트별로 집계"""
        counts: Counter = Counter()
        for record in attendance:
            if record.status != AttendanceStatusType.ATTENDING:
                continue
            if event_ids is not None and record.event_id not in event_ids:
                continue
            counts[record.event_id] += 1
        return counts
