import asyncio
import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from eventhub.exceptions import (
    InternalError,
    NotAuthenticatedError,
    NotFoundError,
    ValidationError,
    WriteConflictError,
)
from eventhub.models.attendance import Attendee, AttendanceStatusType, NO_ATTENDANCE
from eventhub.realtime.change_feed import ChangeKind, ViewScope
from eventhub.repositories.attendance_repository import AttendanceRepository
from eventhub.services.attendance_store import AttendanceStore, KeyedLocks
from tests.conftest import drain, wait_until


async def _count_records(session_factory, event_id) -> int:
    async with session_factory() as db:
        result = await db.execute(select(func.count()).select_from(Attendee).where(Attendee.event_id == event_id))
        return result.scalar_one()


def _collect(feed, scope):
    received = []

    async def handler(notification):
        received.append(notification)

    feed.subscribe(scope, handler)
    return received


async def test_set_status_creates_record_and_publishes(store, feed, make_event, user_id):
    event = await make_event()
    detail = _collect(feed, ViewScope.event(event.id))
    collection = _collect(feed, ViewScope.collection())

    result = await store.set_status(event.id, user_id, "attending")

    assert result == AttendanceStatusType.ATTENDING
    assert await store.get_status(event.id, user_id) == AttendanceStatusType.ATTENDING
    await wait_until(lambda: len(detail) == 1 and len(collection) == 1)
    assert detail[0].change_kind == ChangeKind.ATTENDANCE_CHANGED


async def test_same_status_twice_is_idempotent(store, feed, session_factory, make_event, user_id):
    event = await make_event()
    detail = _collect(feed, ViewScope.event(event.id))

    await store.set_status(event.id, user_id, AttendanceStatusType.MAYBE)
    await store.set_status(event.id, user_id, AttendanceStatusType.MAYBE)

    await drain()
    assert await _count_records(session_factory, event.id) == 1
    assert len(detail) == 1


async def test_status_change_updates_single_record(store, feed, session_factory, make_event, user_id):
    event = await make_event()
    detail = _collect(feed, ViewScope.event(event.id))

    await store.set_status(event.id, user_id, AttendanceStatusType.ATTENDING)
    await store.set_status(event.id, user_id, AttendanceStatusType.NOT_ATTENDING)

    assert await store.get_status(event.id, user_id) == AttendanceStatusType.NOT_ATTENDING
    assert await _count_records(session_factory, event.id) == 1
    await wait_until(lambda: len(detail) == 2)


async def test_concurrent_sets_last_call_wins(store, make_event, user_id):
    event = await make_event()

    await asyncio.gather(
        store.set_status(event.id, user_id, AttendanceStatusType.ATTENDING),
        store.set_status(event.id, user_id, AttendanceStatusType.MAYBE),
        store.set_status(event.id, user_id, AttendanceStatusType.NOT_ATTENDING),
    )

    assert await store.get_status(event.id, user_id) == AttendanceStatusType.NOT_ATTENDING
    assert len(store.locks) == 0


async def test_requires_user(store, make_event):
    event = await make_event()

    with pytest.raises(NotAuthenticatedError):
        await store.set_status(event.id, None, AttendanceStatusType.ATTENDING)


async def test_rejects_unknown_status(store, session_factory, make_event, user_id):
    event = await make_event()

    with pytest.raises(ValidationError):
        await store.set_status(event.id, user_id, "interested")
    assert await _count_records(session_factory, event.id) == 0


async def test_missing_event_is_not_found(store, user_id):
    with pytest.raises(NotFoundError):
        await store.set_status(uuid.uuid4(), user_id, AttendanceStatusType.ATTENDING)


async def test_get_status_without_record_is_none(store, make_event, user_id):
    event = await make_event()

    assert await store.get_status(event.id, user_id) == NO_ATTENDANCE
    assert await store.get_status(event.id, None) == NO_ATTENDANCE


async def test_write_conflict_is_retried_once(store, make_event, user_id, monkeypatch):
    event = await make_event()
    original = AttendanceStore._upsert
    attempts = []

    async def flaky_upsert(self, *args):
        attempts.append(args)
        if len(attempts) == 1:
            raise WriteConflictError(message="Attendance write conflict")
        return await original(self, *args)

    monkeypatch.setattr(AttendanceStore, "_upsert", flaky_upsert)

    result = await store.set_status(event.id, user_id, AttendanceStatusType.ATTENDING)

    assert result == AttendanceStatusType.ATTENDING
    assert len(attempts) == 2


async def test_persistent_write_conflict_is_raised(store, feed, make_event, user_id, monkeypatch):
    event = await make_event()
    detail = _collect(feed, ViewScope.event(event.id))

    async def always_conflict(self, *args):
        raise WriteConflictError(message="Attendance write conflict")

    monkeypatch.setattr(AttendanceStore, "_upsert", always_conflict)

    with pytest.raises(WriteConflictError):
        await store.set_status(event.id, user_id, AttendanceStatusType.ATTENDING)
    await drain()
    assert detail == []


async def test_list_attendees_in_response_order(store, make_event):
    event = await make_event()
    users = [uuid.uuid4() for _ in range(3)]
    for user in users:
        await store.set_status(event.id, user, AttendanceStatusType.ATTENDING)

    attendees = await store.list_attendees(event.id)

    assert [a.user_id for a in attendees] == users


async def test_keyed_locks_cleanup():
    locks = KeyedLocks()
    key = (uuid.uuid4(), uuid.uuid4())

    async with locks.hold(key):
        assert len(locks) == 1
    assert len(locks) == 0


class BrokenSession:
    """execute마다 드라이버 에러를 내는 세션 대역"""

    async def execute(self, *args, **kwargs):
        raise OperationalError("UPDATE attendees", {}, Exception("disk I/O error"))

    async def flush(self):
        pass


async def test_update_driver_failure_is_typed(user_id):
    repo = AttendanceRepository(BrokenSession())

    with pytest.raises(InternalError):
        await repo.update_status_if_changed(uuid.uuid4(), user_id, AttendanceStatusType.ATTENDING)
