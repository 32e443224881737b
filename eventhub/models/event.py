import uuid
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import (
    String, Text, Enum, Uuid, CheckConstraint, Index, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eventhub.db import Base, UTCDateTime, utcnow


class EventCategoryType(PyEnum):
    CONFERENCE = "conference"
    WORKSHOP = "workshop"
    SOCIAL = "social"
    SPORTS = "sports"
    MUSIC = "music"
    OTHER = "other"


def enum_values(enum_cls: type[PyEnum]) -> list[str]:
    """DB에는 Enum name이 아닌 value(소문자)를 저장"""
    return [member.value for member in enum_cls]


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint(
            "LENGTH(title) >= 3 AND LENGTH(title) <= 100",
            name="ck_events_title_length"
        ),
        CheckConstraint("LENGTH(description) >= 20", name="ck_events_description_length"),
        Index("idx_events_date", "date"),
        Index("idx_events_category_date", "category", "date"),
        Index("idx_events_created_by", "created_by"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    location: Mapped[str] = mapped_column(Text, nullable=False)

    category: Mapped[EventCategoryType] = mapped_column(
        Enum(
            EventCategoryType,
            name="event_category_type",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
        server_default=EventCategoryType.CONFERENCE.value
    )
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # 작성자 (외부 identity provider의 사용자 ID)
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, server_default=func.now()
    )

    # Relationships
    attendees = relationship(
        "Attendee", back_populates="event", cascade="all, delete-orphan"
    )
