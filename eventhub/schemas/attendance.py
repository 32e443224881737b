from datetime import datetime
from typing import List, Literal
from uuid import UUID
from pydantic import BaseModel, ConfigDict

from eventhub.models.attendance import AttendanceStatusType


class AttendanceUpdateRequest(BaseModel):
    status: AttendanceStatusType


class AttendanceStatusResponse(BaseModel):
    event_id: UUID
    status: AttendanceStatusType | Literal["none"]


class AttendeeInfo(BaseModel):
    """참석자 정보 (프로필은 외부 서비스에서 조회)"""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    status: AttendanceStatusType
    created_at: datetime


class AttendeeListResponse(BaseModel):
    event_id: UUID
    attending_count: int
    attendees: List[AttendeeInfo]
