"""
Dependencies module - 라우터에서 사용하는 의존성 재export
"""
from eventhub.dependencies.auth import get_current_user_id, get_identity_provider
from eventhub.dependencies.filters import get_filter_criteria
from eventhub.dependencies.realtime import get_change_feed, get_attendance_locks
from eventhub.dependencies.repositories import get_event_repository, get_attendance_repository
from eventhub.dependencies.services import get_event_service, get_attendance_store, get_stream_service

__all__ = [
    "get_current_user_id",
    "get_identity_provider",
    "get_filter_criteria",
    "get_change_feed",
    "get_attendance_locks",
    "get_event_repository",
    "get_attendance_repository",
    "get_event_service",
    "get_attendance_store",
    "get_stream_service",
]
