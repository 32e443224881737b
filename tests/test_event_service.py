import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import insert, select

from eventhub.exceptions import NotAuthenticatedError, NotFoundError, ValidationError
from eventhub.models.attendance import AttendanceStatusType
from eventhub.models.event import Event, EventCategoryType
from eventhub.realtime.change_feed import ChangeKind, ViewScope
from eventhub.repositories.attendance_repository import AttendanceRepository
from eventhub.repositories.event_repository import EventRepository
from eventhub.schemas.event import EventCreateRequest
from eventhub.schemas.filters import FilterCriteria, TimeWindow
from eventhub.services.event_service import EventService
from eventhub.services.view_session import EventListSession
from tests.conftest import wait_until


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def service(db, feed):
    return EventService(
        db=db,
        event_repo=EventRepository(db),
        attendance_repo=AttendanceRepository(db),
        change_feed=feed,
    )


def _payload(**overrides):
    payload = {
        "title": "Python Meetup",
        "description": "Talks and snacks for local Python developers.",
        "date": datetime.now(timezone.utc) + timedelta(days=3),
        "location": "Room 101",
    }
    payload.update(overrides)
    return payload


async def test_create_event_publishes_to_collection(service, feed, user_id):
    received = []

    async def handler(notification):
        received.append(notification)

    feed.subscribe(ViewScope.collection(), handler)

    event = await service.create_event(_payload(), creator_id=user_id)

    assert event.id is not None
    assert event.created_by == user_id
    assert event.category == EventCategoryType.CONFERENCE
    await wait_until(lambda: len(received) == 1)
    assert received[0].change_kind == ChangeKind.EVENT_CREATED


async def test_create_event_strips_and_normalizes(service, user_id):
    event = await service.create_event(
        _payload(title="  Jazz Night  ", image_url="   ", category="music"),
        creator_id=user_id,
    )

    assert event.title == "Jazz Night"
    assert event.image_url is None
    assert event.category == EventCategoryType.MUSIC


@pytest.mark.parametrize(
    "overrides",
    [
        {"title": "ab"},
        {"title": "x" * 101},
        {"description": "too short"},
        {"location": ""},
        {"category": "party"},
        {"date": datetime.now(timezone.utc) - timedelta(minutes=1)},
    ],
)
async def test_create_event_rejects_invalid_input(service, feed, user_id, overrides):
    received = []

    async def handler(notification):
        received.append(notification)

    feed.subscribe(ViewScope.collection(), handler)

    with pytest.raises(ValidationError):
        await service.create_event(_payload(**overrides), creator_id=user_id)

    assert await service.event_repo.get_all() == []
    assert received == []


async def test_create_event_requires_user(service):
    with pytest.raises(NotAuthenticatedError):
        await service.create_event(_payload(), creator_id=None)


async def test_list_events_applies_filters(service, make_event, store, user_id):
    now = datetime.now(timezone.utc)
    fest = await make_event("Summer Fest", now + timedelta(days=2), EventCategoryType.MUSIC)
    await make_event("Rock Night", now + timedelta(days=1), EventCategoryType.MUSIC)
    await make_event("Fest of Code", now + timedelta(days=1), EventCategoryType.CONFERENCE)
    await make_event("Old Fest", now - timedelta(days=1), EventCategoryType.MUSIC)
    await store.set_status(fest.id, user_id, AttendanceStatusType.ATTENDING)

    result = await service.list_events(FilterCriteria(category="music", search="FEST"))

    assert [(item.event.title, item.attending_count) for item in result] == [("Summer Fest", 1)]


async def test_list_events_past_window(service, make_event):
    now = datetime.now(timezone.utc)
    await make_event("Last Week", now - timedelta(days=7))
    await make_event("Yesterday", now - timedelta(days=1))
    await make_event("Tomorrow", now + timedelta(days=1))

    result = await service.list_events(FilterCriteria(time_window=TimeWindow.PAST))

    assert [item.event.title for item in result] == ["Yesterday", "Last Week"]


async def test_search_treats_wildcards_literally(service, make_event):
    await make_event("100% Fun Day")
    await make_event("Fun Day")

    result = await service.list_events(FilterCriteria(search="100%"))

    assert [item.event.title for item in result] == ["100% Fun Day"]


async def test_event_detail_includes_my_status(service, make_event, store, user_id):
    event = await make_event()
    other = uuid.uuid4()
    await store.set_status(event.id, other, AttendanceStatusType.ATTENDING)
    await store.set_status(event.id, user_id, AttendanceStatusType.MAYBE)

    detail = await service.get_event_detail(event.id, user_id)
    anonymous = await service.get_event_detail(event.id, None)

    assert detail.my_status == AttendanceStatusType.MAYBE
    assert detail.attending_count == 1
    assert [a.user_id for a in detail.attendees] == [other, user_id]
    assert not detail.is_past
    assert anonymous.my_status == "none"


async def test_event_detail_missing_event(service):
    with pytest.raises(NotFoundError):
        await service.get_event_detail(uuid.uuid4(), None)


async def test_my_events(service, make_event, store, user_id):
    now = datetime.now(timezone.utc)
    mine_early = await make_event("Mine Early", now + timedelta(days=1), created_by=user_id)
    mine_late = await make_event("Mine Late", now + timedelta(days=5), created_by=user_id)
    going = await make_event("Going")
    maybe = await make_event("Maybe")
    await store.set_status(going.id, user_id, AttendanceStatusType.ATTENDING)
    await store.set_status(maybe.id, user_id, AttendanceStatusType.MAYBE)

    result = await service.get_my_events(user_id)

    assert [e.id for e in result.created] == [mine_late.id, mine_early.id]
    assert [e.id for e in result.attending] == [going.id]

    with pytest.raises(NotAuthenticatedError):
        await service.get_my_events(None)


async def test_non_ascii_search_matches_list_session(service, session_factory, feed, make_event):
    await make_event("Été Festival", category=EventCategoryType.MUSIC)
    await make_event("Winter Gala", category=EventCategoryType.MUSIC)
    criteria = FilterCriteria(search="été")

    result = await service.list_events(criteria)
    session = EventListSession(session_factory=session_factory, change_feed=feed, criteria=criteria)
    await session.open()

    assert [item.event.title for item in result] == ["Été Festival"]
    assert [item.event.title for item in session.filtered_events] == ["Été Festival"]
    session.close()


async def test_category_default_matches_column_default(session_factory, user_id):
    async with session_factory() as db:
        await db.execute(
            insert(Event).values(
                title="No Category",
                description="Inserted without choosing any category.",
                date=datetime.now(timezone.utc) + timedelta(days=1),
                location="Room 1",
                created_by=user_id,
            )
        )
        await db.commit()
        stored = (await db.execute(select(Event.category))).scalar_one()

    assert stored == EventCreateRequest.model_fields["category"].default
    assert stored == EventCategoryType.CONFERENCE
