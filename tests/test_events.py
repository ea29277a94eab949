from datetime import timedelta

import pytest

from clubhub.core.clock import utcnow


@pytest.mark.anyio
async def test_anonymous_callers_only_see_public_events(async_client, make_user, make_event, headers_for):
    member = await make_user()
    public = await make_event(title="Open Day")
    private = await make_event(title="Members Dinner", is_public=False)

    r = await async_client.get("/events")
    assert [e["title"] for e in r.json()["events"]] == ["Open Day"]

    r = await async_client.get("/events", headers=headers_for(member))
    assert {e["title"] for e in r.json()["events"]} == {"Open Day", "Members Dinner"}

    assert (await async_client.get(f"/events/{private.id}")).status_code == 403
    assert (await async_client.get(f"/events/{private.id}", headers=headers_for(member))).status_code == 200
    assert (await async_client.get(f"/events/{public.id}")).status_code == 200
    assert (await async_client.get("/events/9999")).status_code == 404


@pytest.mark.anyio
async def test_upcoming_and_past(async_client, make_event):
    now = utcnow()
    await make_event(title="Later", date=now + timedelta(days=10))
    await make_event(title="Soon", date=now + timedelta(days=1))
    await make_event(title="Yesterday", date=now - timedelta(days=1))
    await make_event(title="Called off", date=now - timedelta(days=2), cancelled=True)
    await make_event(title="Bulletin", date=now + timedelta(days=2), category="News")

    r = await async_client.get("/events/upcoming")
    assert [e["title"] for e in r.json()["events"]] == ["Soon", "Later"]

    r = await async_client.get("/events/past")
    assert [e["title"] for e in r.json()["events"]] == ["Yesterday"]


@pytest.mark.anyio
async def test_events_by_type(async_client, make_event):
    await make_event(title="Notice", type="announcement", category="Announcement")
    await make_event(title="Football", type="activity", category="Activity")

    r = await async_client.get("/events/type/announcement")
    assert [e["title"] for e in r.json()["events"]] == ["Notice"]

    assert (await async_client.get("/events/type/party")).status_code == 400


@pytest.mark.anyio
async def test_admin_event_lifecycle(async_client, make_user, headers_for):
    admin = await make_user(role="admin")
    member = await make_user()
    h = headers_for(admin)

    payload = {
        "title": "Cultural Night",
        "description": "Food and music",
        "date": (utcnow() + timedelta(days=3)).isoformat(),
        "location": "Hall B",
        "category": "Cultural",
        "requires_payment": True,
        "payment_amount": 25,
    }
    assert (await async_client.post("/admin/events", json=payload, headers=headers_for(member))).status_code == 403

    r = await async_client.post("/admin/events", json=payload, headers=h)
    assert r.status_code == 201, r.text
    event = r.json()
    assert event["attendees"] == 0
    assert event["registrations"] == []

    bad = dict(payload, category="Party")
    assert (await async_client.post("/admin/events", json=bad, headers=h)).status_code == 400

    r = await async_client.patch(f"/admin/events/{event['id']}", json={"location": "Hall C", "fee": 5}, headers=h)
    assert r.status_code == 200
    assert r.json()["location"] == "Hall C"
    assert r.json()["fee"] == 5
    assert r.json()["title"] == "Cultural Night"

    r = await async_client.patch(f"/admin/events/{event['id']}/cancel", headers=h)
    assert r.json()["cancelled"] is True

    r = await async_client.get("/admin/events", headers=h)
    assert [e["id"] for e in r.json()["events"]] == [event["id"]]

    assert (await async_client.delete(f"/admin/events/{event['id']}", headers=h)).status_code == 200
    assert (await async_client.get(f"/events/{event['id']}")).status_code == 404
