import uuid
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import (
    Enum, ForeignKey, Uuid, UniqueConstraint, Index, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eventhub.db import Base, UTCDateTime, utcnow
from eventhub.models.event import enum_values


class AttendanceStatusType(PyEnum):
    ATTENDING = "attending"
    MAYBE = "maybe"
    NOT_ATTENDING = "not_attending"


# 레코드가 없을 때 조회 결과 (DB에는 저장되지 않음)
NO_ATTENDANCE = "none"


class Attendee(Base):
    __tablename__ = "attendees"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_attendees_event_user"),
        Index("idx_attendees_event_id_created_at", "event_id", "created_at"),
        Index("idx_attendees_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)

    status: Mapped[AttendanceStatusType] = mapped_column(
        Enum(
            AttendanceStatusType,
            name="attendance_status_type",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Relationships
    event = relationship("Event", back_populates="attendees")
