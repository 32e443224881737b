import uuid
from datetime import datetime, timedelta, timezone

from eventhub.models.event import EventCategoryType
from eventhub.realtime.change_feed import ViewScope
from tests.conftest import wait_until


def _headers(user_id):
    return {"X-User-Id": str(user_id)}


def _event_body(**overrides):
    body = {
        "title": "Python Meetup",
        "description": "Talks and snacks for local Python developers.",
        "date": (datetime.now(timezone.utc) + timedelta(days=3)).isoformat(),
        "location": "Room 101",
        "category": "workshop",
    }
    body.update(overrides)
    return body


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_create_event(client, feed, user_id):
    received = []

    async def handler(notification):
        received.append(notification)

    feed.subscribe(ViewScope.collection(), handler)

    response = await client.post("/v1/events", json=_event_body(), headers=_headers(user_id))

    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Python Meetup"
    assert data["category"] == "workshop"
    assert data["created_by"] == str(user_id)
    await wait_until(lambda: len(received) == 1)


async def test_create_event_requires_identity(client):
    response = await client.post("/v1/events", json=_event_body())

    assert response.status_code == 401
    assert response.json()["error"] == "NotAuthenticatedError"


async def test_create_event_validation_errors(client, user_id):
    short = await client.post("/v1/events", json=_event_body(title="ab"), headers=_headers(user_id))
    past = await client.post(
        "/v1/events",
        json=_event_body(date=(datetime.now(timezone.utc) - timedelta(days=1)).isoformat()),
        headers=_headers(user_id),
    )

    assert short.status_code == 400
    assert short.json()["error"] == "ValidationError"
    assert past.status_code == 400
    assert past.json()["message"] == "Invalid event date"


async def test_list_events_with_filters(client, make_event):
    now = datetime.now(timezone.utc)
    await make_event("Summer Fest", now + timedelta(days=2), EventCategoryType.MUSIC)
    await make_event("Rock Night", now + timedelta(days=1), EventCategoryType.MUSIC)
    await make_event("Old Fest", now - timedelta(days=1), EventCategoryType.MUSIC)

    upcoming = await client.get("/v1/events")
    filtered = await client.get("/v1/events", params={"category": "music", "search": "fest", "time_window": "all"})

    assert [e["title"] for e in upcoming.json()["events"]] == ["Rock Night", "Summer Fest"]
    assert filtered.status_code == 200
    assert [e["title"] for e in filtered.json()["events"]] == ["Old Fest", "Summer Fest"]
    assert filtered.json()["criteria"] == {"category": "music", "time_window": "all", "search": "fest"}


async def test_list_events_rejects_unknown_filter(client):
    response = await client.get("/v1/events", params={"time_window": "someday"})

    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


async def test_attendance_flow(client, make_event, user_id):
    event = await make_event()
    url = f"/v1/events/{event.id}/attendance"

    before = await client.get(url, headers=_headers(user_id))
    first = await client.put(url, json={"status": "attending"}, headers=_headers(user_id))
    again = await client.put(url, json={"status": "attending"}, headers=_headers(user_id))
    detail = await client.get(f"/v1/events/{event.id}", headers=_headers(user_id))
    roster = await client.get(f"/v1/events/{event.id}/attendees")

    assert before.json()["status"] == "none"
    assert first.status_code == 200
    assert first.json() == {"event_id": str(event.id), "status": "attending"}
    assert again.json()["status"] == "attending"
    assert detail.json()["attending_count"] == 1
    assert detail.json()["my_status"] == "attending"
    assert len(roster.json()["attendees"]) == 1


async def test_attendance_errors(client, make_event, user_id):
    event = await make_event()

    anonymous = await client.put(f"/v1/events/{event.id}/attendance", json={"status": "maybe"})
    invalid = await client.put(
        f"/v1/events/{event.id}/attendance", json={"status": "interested"}, headers=_headers(user_id)
    )
    missing = await client.put(
        f"/v1/events/{uuid.uuid4()}/attendance", json={"status": "maybe"}, headers=_headers(user_id)
    )

    assert anonymous.status_code == 401
    assert invalid.status_code == 400
    assert missing.status_code == 404


async def test_event_detail_not_found(client):
    response = await client.get(f"/v1/events/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["error"] == "NotFoundError"


async def test_my_events(client, make_event, user_id):
    created = await make_event("My Own Event", created_by=user_id)
    going = await make_event("Going Somewhere")
    await client.put(f"/v1/events/{going.id}/attendance", json={"status": "attending"}, headers=_headers(user_id))

    response = await client.get("/v1/events/mine", headers=_headers(user_id))
    anonymous = await client.get("/v1/events/mine")

    assert [e["id"] for e in response.json()["created"]] == [str(created.id)]
    assert [e["id"] for e in response.json()["attending"]] == [str(going.id)]
    assert anonymous.status_code == 401


async def test_invalid_identity_header_is_anonymous(client, make_event):
    event = await make_event()

    response = await client.put(
        f"/v1/events/{event.id}/attendance", json={"status": "maybe"}, headers={"X-User-Id": "not-a-uuid"}
    )

    assert response.status_code == 401
