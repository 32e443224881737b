from fastapi import Request

from eventhub.realtime.change_feed import ChangeFeed
from eventhub.services.attendance_store import KeyedLocks


def get_change_feed(request: Request) -> ChangeFeed:
    """프로세스 공유 ChangeFeed (lifespan에서 생성)"""
    return request.app.state.change_feed


def get_attendance_locks(request: Request) -> KeyedLocks:
    """프로세스 공유 (event, user) 키별 lock 레지스트리"""
    return request.app.state.attendance_locks
