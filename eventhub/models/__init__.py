# Models package
from eventhub.models.event import Event, EventCategoryType
from eventhub.models.attendance import Attendee, AttendanceStatusType, NO_ATTENDANCE

__all__ = [
    # Event
    "Event", "EventCategoryType",
    # Attendance
    "Attendee", "AttendanceStatusType", "NO_ATTENDANCE",
]
