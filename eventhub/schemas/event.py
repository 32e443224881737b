from datetime import datetime
from typing import TYPE_CHECKING, List, Literal
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_validator

from eventhub.models.event import EventCategoryType
from eventhub.models.attendance import AttendanceStatusType
from eventhub.schemas.attendance import AttendeeInfo
from eventhub.schemas.filters import FilterCriteria

if TYPE_CHECKING:
    from eventhub.services.filter_engine import FilteredEvent


# ============================================================================
# Event Creation Request Schema
# ============================================================================

class EventCreateRequest(BaseModel):
    """
    이벤트 생성 요청
    - 길이 제약은 스키마에서, 미래 날짜 검증은 서비스에서 (now 기준)
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=20)
    date: datetime
    location: str = Field(..., min_length=1)
    category: EventCategoryType = EventCategoryType.CONFERENCE
    image_url: str | None = None

    @field_validator("image_url")
    @classmethod
    def empty_image_to_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value


# ============================================================================
# Event Response Schemas
# ============================================================================

class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str
    date: datetime
    location: str
    category: EventCategoryType
    image_url: str | None = None
    created_by: UUID
    created_at: datetime


class EventListItemResponse(EventResponse):
    attending_count: int

    @classmethod
    def from_filtered(cls, item: "FilteredEvent") -> "EventListItemResponse":
        base = EventResponse.model_validate(item.event)
        return cls(**base.model_dump(), attending_count=item.attending_count)


class EventListResponse(BaseModel):
    criteria: FilterCriteria
    events: List[EventListItemResponse]


class EventDetailResponse(BaseModel):
    """이벤트 상세 (참석자 명단 + 현재 사용자 응답 상태)"""
    event: EventResponse
    is_past: bool
    attending_count: int
    attendees: List[AttendeeInfo]
    my_status: AttendanceStatusType | Literal["none"]


class MyEventsResponse(BaseModel):
    created: List[EventResponse]
    attending: List[EventResponse]
