import pytest

from clubhub.services import registrations as reg
from clubhub.services.hooks import HookRegistry
from clubhub.services.realtime import LiveHub, hub


class FakeSession:
    def __init__(self):
        self.commits = 0
        self.rollbacks = 0

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


class FakeSocket:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []
        self.accepted = False

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)


@pytest.mark.anyio
async def test_hook_failure_is_isolated():
    registry = HookRegistry()
    seen = []

    async def first(db, fact):
        seen.append(("first", fact))
        return "ok"

    async def broken(db, fact):
        raise ValueError("boom")

    async def last(db, fact):
        seen.append(("last", fact))

    registry.subscribe("thing.happened", "first", first)
    registry.subscribe("thing.happened", "broken", broken)
    registry.subscribe("thing.happened", "last", last)

    session = FakeSession()
    outcomes = await registry.publish(session, "thing.happened", 42)

    assert [(o.name, o.ok) for o in outcomes] == [("first", True), ("broken", False), ("last", True)]
    assert outcomes[0].result == "ok"
    assert outcomes[1].error == "boom"
    assert seen == [("first", 42), ("last", 42)]
    assert session.commits == 2
    assert session.rollbacks == 1


@pytest.mark.anyio
async def test_subscribe_replaces_by_name_and_unsubscribe():
    registry = HookRegistry()

    async def a(db, fact):
        return "a"

    async def b(db, fact):
        return "b"

    registry.subscribe("t", "handler", a)
    registry.subscribe("t", "handler", b)
    assert registry.handlers("t") == ["handler"]

    outcomes = await registry.publish(FakeSession(), "t", None)
    assert outcomes[0].result == "b"

    registry.unsubscribe("t", "handler")
    assert await registry.publish(FakeSession(), "t", None) == []


@pytest.mark.anyio
async def test_live_hub_fans_out_and_drops_dead_sockets():
    live = LiveHub()
    good, dead = FakeSocket(), FakeSocket(fail=True)
    await live.connect(good)
    await live.connect(dead)
    assert good.accepted and live.connection_count == 2

    delivered = await live.publish("event:update", {"event_id": 1})

    assert delivered == 1
    assert good.sent == [{"channel": "event:update", "payload": {"event_id": 1}}]
    assert live.connection_count == 1


@pytest.mark.anyio
async def test_live_hub_rooms():
    live = LiveHub()
    inside, outside = FakeSocket(), FakeSocket()
    await live.connect(inside)
    await live.connect(outside)
    live.join(inside, "event:3")

    assert await live.publish("event:update", {"n": 1}, room="event:3") == 1
    assert outside.sent == []

    live.leave(inside, "event:3")
    assert await live.publish("event:update", {"n": 2}, room="event:3") == 0


def test_websocket_subscribe():
    from starlette.testclient import TestClient

    from clubhub.main import app

    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"action": "subscribe", "room": "event:1"})
            assert ws.receive_json() == {"ok": True, "action": "subscribe", "room": "event:1"}
            ws.send_json({"action": "dance"})
            assert "error" in ws.receive_json()


@pytest.mark.anyio
async def test_room_subscriber_gets_one_registration_update(db, make_user, make_event):
    user = await make_user()
    event = await make_event()
    watcher = FakeSocket()
    await hub.connect(watcher)
    hub.join(watcher, f"event:{event.id}")
    try:
        await reg.register(db, event.id, user.id, reg.RegistrationForm())
    finally:
        hub.disconnect(watcher)

    updates = [m for m in watcher.sent if m["payload"].get("action") == "registered"]
    assert len(updates) == 1
    assert updates[0]["payload"]["attendees"] == 1
