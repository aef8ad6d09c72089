"""
Disconnect cleanup and session coordinator unit tests.

The hub is driven directly with fake sockets and a fake session store —
no WebSocket transport involved except in the end-to-end disconnect test.
Covers:
  - disconnect removes a connection from every call and session and
    notifies each room exactly once
  - close() is idempotent
  - a failing notification for one room does not stop the others
  - start/end broadcast to the whole broadcast group
  - a start write in flight does not block other connections' events
  - ending a session clears presence before announcing it
"""

import asyncio
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from studyhub.services.session_store import SessionNotFoundError
from studyhub.tests.conftest import FakeWebSocket, join_call, join_session, open_socket
from studyhub.websocket.hub import RealtimeHub


class FakeSessionStore:
    def __init__(self) -> None:
        self.started: dict[str, datetime] = {}
        self.ended: dict[str, datetime] = {}
        self.gate: asyncio.Event | None = None

    async def update_session_start(self, session_id: str) -> datetime:
        if self.gate is not None:
            await self.gate.wait()
        if session_id == "missing":
            raise SessionNotFoundError(session_id)
        self.started[session_id] = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
        return self.started[session_id]

    async def update_session_end(self, session_id: str) -> datetime:
        if session_id == "missing":
            raise SessionNotFoundError(session_id)
        self.ended[session_id] = datetime(2026, 1, 1, 10, 0, tzinfo=timezone.utc)
        return self.ended[session_id]


class FakeMessageStore:
    async def create_message(self, group_id: str, user_id: str, content: str) -> dict:
        return {"id": 1, "groupId": group_id, "userId": user_id, "content": content, "createdAt": None}


@pytest.fixture()
def fake_store():
    return FakeSessionStore()


@pytest.fixture()
def fake_hub(fake_store):
    return RealtimeHub(session_store=fake_store, message_store=FakeMessageStore())


def _connect(hub: RealtimeHub, connection_id: str, fail: bool = False) -> FakeWebSocket:
    ws = FakeWebSocket(fail=fail)
    hub.lifecycle.open(connection_id, ws)
    return ws


# ---------------------------------------------------------------------------
# Disconnect cleanup
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_disconnect_cleans_call_and_session(fake_hub):
    _connect(fake_hub, "a")
    ws_b = _connect(fake_hub, "b")
    for conn, user in (("a", "u1"), ("b", "u2")):
        await fake_hub.dispatch(conn, {"type": "joinGroupCall", "groupId": "g1", "userId": user, "userName": user})
        await fake_hub.dispatch(conn, {"type": "joinSession", "sessionId": "s1", "userId": user, "userName": user})
    ws_b.sent.clear()

    await fake_hub.lifecycle.close("a")

    assert ws_b.types() == ["userLeftCall", "userLeftSession"]
    assert ws_b.sent[0]["socketId"] == "a"
    assert ws_b.sent[1]["userId"] == "u1"
    assert not fake_hub.call_registry.has("g1", "a")
    assert not fake_hub.session_registry.has("s1", "a")
    assert not fake_hub.manager.is_connected("a")


@pytest.mark.asyncio
async def test_close_runs_once(fake_hub):
    _connect(fake_hub, "a")
    ws_b = _connect(fake_hub, "b")
    await fake_hub.dispatch("a", {"type": "joinGroupCall", "groupId": "g1", "userId": "u1"})
    await fake_hub.dispatch("b", {"type": "joinGroupCall", "groupId": "g1", "userId": "u2"})
    ws_b.sent.clear()

    await fake_hub.lifecycle.close("a")
    await fake_hub.lifecycle.close("a")

    assert ws_b.types() == ["userLeftCall"]
    assert fake_hub.lifecycle.open_connections == 1


@pytest.mark.asyncio
async def test_disconnect_before_any_join_is_silent(fake_hub):
    _connect(fake_hub, "a")
    ws_b = _connect(fake_hub, "b")
    await fake_hub.lifecycle.close("a")
    assert ws_b.sent == []


@pytest.mark.asyncio
async def test_cleanup_failure_in_one_room_does_not_block_others(fake_hub, monkeypatch):
    _connect(fake_hub, "a")
    ws_b = _connect(fake_hub, "b")
    await fake_hub.dispatch("a", {"type": "joinGroupCall", "groupId": "g1", "userId": "u1"})
    await fake_hub.dispatch("a", {"type": "joinSession", "sessionId": "s1", "userId": "u1"})
    await fake_hub.dispatch("b", {"type": "joinSession", "sessionId": "s1", "userId": "u2"})
    ws_b.sent.clear()

    async def boom(group_id, record):
        raise RuntimeError("notify failed")

    monkeypatch.setattr(fake_hub.calls, "announce_departure", boom)

    await fake_hub.lifecycle.close("a")

    assert ws_b.types() == ["userLeftSession"]
    assert fake_hub.call_registry.rooms() == []


@pytest.mark.asyncio
async def test_dead_socket_is_dropped_on_broadcast(fake_hub):
    _connect(fake_hub, "a", fail=True)
    ws_b = _connect(fake_hub, "b")
    await fake_hub.dispatch("b", {"type": "joinGroupCall", "groupId": "g1", "userId": "u2"})
    fake_hub.manager.join_group("call:g1", "a")

    await fake_hub.dispatch("b", {"type": "leaveGroupCall", "groupId": "g1"})

    assert not fake_hub.manager.is_connected("a")
    assert ws_b.types() == ["existingParticipants"]


def test_disconnect_over_websocket_notifies_each_room_once(client: TestClient, study_session, hub):
    with client.websocket_connect("/ws") as ws_b:
        open_socket(ws_b)
        join_call(ws_b, "g1", "u2")
        join_session(ws_b, study_session, "u2")

        with client.websocket_connect("/ws") as ws_a:
            a = open_socket(ws_a)
            join_call(ws_a, "g1", "u1", "Ada")
            join_session(ws_a, study_session, "u1", "Ada")
            assert ws_b.receive_json()["type"] == "userJoinedCall"
            assert ws_b.receive_json()["type"] == "userJoinedSession"

        left_call = ws_b.receive_json()
        left_session = ws_b.receive_json()
        assert left_call["type"] == "userLeftCall"
        assert left_call["socketId"] == a
        assert left_session["type"] == "userLeftSession"
        assert left_session["userName"] == "Ada"

        # Sentinel: B's own error arrives next, so no duplicate departures were queued
        ws_b.send_json({"type": "offer", "groupId": "g1", "offer": {"sdp": "x"}, "receiverId": a})
        assert ws_b.receive_json()["type"] == "error"

        assert not hub.call_registry.has("g1", a)
        assert not hub.session_registry.has(study_session, a)


# ---------------------------------------------------------------------------
# Session coordinator
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_start_broadcasts_to_group_members(fake_hub, fake_store):
    ws_a = _connect(fake_hub, "a")
    ws_b = _connect(fake_hub, "b")
    await fake_hub.dispatch("a", {"type": "joinSession", "sessionId": "s1", "userId": "u1"})
    await fake_hub.dispatch("b", {"type": "joinSession", "sessionId": "s1", "userId": "u2"})
    ws_a.sent.clear()
    ws_b.sent.clear()

    await fake_hub.dispatch("a", {"type": "startSession", "sessionId": "s1"})

    expected = fake_store.started["s1"].isoformat()
    assert ws_a.sent == [{"type": "sessionStarted", "sessionId": "s1", "startedAt": expected}]
    assert ws_b.sent == ws_a.sent


@pytest.mark.asyncio
async def test_end_reaches_members_whose_presence_was_cleared(fake_hub):
    ws_a = _connect(fake_hub, "a")
    await fake_hub.dispatch("a", {"type": "joinSession", "sessionId": "s1", "userId": "u1"})
    await fake_hub.dispatch("a", {"type": "endSession", "sessionId": "s1"})
    assert fake_hub.session_registry.rooms() == []

    # Broadcast group membership survives the presence wipe
    ws_a.sent.clear()
    await fake_hub.dispatch("a", {"type": "endSession", "sessionId": "s1"})
    assert ws_a.types() == ["sessionEnded"]


@pytest.mark.asyncio
async def test_start_failure_does_not_touch_presence(fake_hub):
    ws_a = _connect(fake_hub, "a")
    await fake_hub.dispatch("a", {"type": "joinSession", "sessionId": "missing", "userId": "u1"})
    ws_a.sent.clear()

    await fake_hub.dispatch("a", {"type": "startSession", "sessionId": "missing"})

    assert ws_a.sent == [{"type": "error", "message": "Failed to start session", "event": "startSession"}]
    assert fake_hub.session_registry.has("missing", "a")


@pytest.mark.asyncio
async def test_pending_start_does_not_block_other_connections(fake_hub, fake_store):
    ws_a = _connect(fake_hub, "a")
    ws_b = _connect(fake_hub, "b")
    await fake_hub.dispatch("a", {"type": "joinSession", "sessionId": "s1", "userId": "u1"})
    await fake_hub.dispatch("b", {"type": "joinSession", "sessionId": "s1", "userId": "u2"})
    ws_a.sent.clear()
    ws_b.sent.clear()

    fake_store.gate = asyncio.Event()
    start = asyncio.create_task(fake_hub.dispatch("a", {"type": "startSession", "sessionId": "s1"}))
    await asyncio.sleep(0)

    # B leaves while A's write is still pending
    await fake_hub.dispatch("b", {"type": "leaveSession", "sessionId": "s1"})
    assert ws_a.types() == ["userLeftSession"]

    fake_store.gate.set()
    await start
    assert ws_a.types() == ["userLeftSession", "sessionStarted"]
    assert ws_b.sent == []


@pytest.mark.asyncio
async def test_handler_exception_becomes_scoped_error(fake_hub, monkeypatch):
    ws_a = _connect(fake_hub, "a")

    async def boom(connection_id, event):
        raise RuntimeError("unexpected")

    monkeypatch.setitem(fake_hub._routes, "joinGroupCall", (fake_hub._routes["joinGroupCall"][0], boom))

    await fake_hub.dispatch("a", {"type": "joinGroupCall", "groupId": "g1", "userId": "u1"})

    assert ws_a.sent == [{"type": "error", "message": "Internal error", "event": "joinGroupCall"}]


@pytest.mark.asyncio
async def test_joining_new_session_after_end_leaves_old_broadcast_group(fake_hub):
    ws_a = _connect(fake_hub, "a")
    ws_b = _connect(fake_hub, "b")
    await fake_hub.dispatch("a", {"type": "joinSession", "sessionId": "s1", "userId": "u1"})
    await fake_hub.dispatch("b", {"type": "joinSession", "sessionId": "s1", "userId": "u2"})
    await fake_hub.dispatch("a", {"type": "endSession", "sessionId": "s1"})

    await fake_hub.dispatch("a", {"type": "joinSession", "sessionId": "s2", "userId": "u1"})
    assert fake_hub.manager.groups_of("a") == ["session:s2"]

    ws_a.sent.clear()
    ws_b.sent.clear()
    await fake_hub.dispatch("b", {"type": "startSession", "sessionId": "s1"})

    assert ws_b.types() == ["sessionStarted"]
    assert ws_a.sent == []


class GatedWebSocket(FakeWebSocket):
    """Holds every send until the gate opens."""

    def __init__(self) -> None:
        super().__init__()
        self.gate: asyncio.Event | None = None

    async def send_text(self, data: str) -> None:
        if self.gate is not None:
            await self.gate.wait()
        await super().send_text(data)


@pytest.mark.asyncio
async def test_join_during_end_broadcast_stays_tracked(fake_hub):
    _connect(fake_hub, "a")
    ws_b = GatedWebSocket()
    fake_hub.lifecycle.open("b", ws_b)
    ws_c = _connect(fake_hub, "c")
    await fake_hub.dispatch("a", {"type": "joinSession", "sessionId": "s1", "userId": "u1"})
    await fake_hub.dispatch("b", {"type": "joinSession", "sessionId": "s1", "userId": "u2"})

    ws_b.gate = asyncio.Event()
    end = asyncio.create_task(fake_hub.dispatch("a", {"type": "endSession", "sessionId": "s1"}))
    await asyncio.sleep(0)

    # C joins while sessionEnded is still being delivered
    join = asyncio.create_task(fake_hub.dispatch("c", {"type": "joinSession", "sessionId": "s1", "userId": "u3"}))
    await asyncio.sleep(0)
    ws_b.gate.set()
    await asyncio.gather(end, join)

    assert fake_hub.session_registry.has("s1", "c")
    assert not fake_hub.session_registry.has("s1", "a")
    assert ws_c.sent[0] == {"type": "sessionParticipants", "sessionId": "s1", "participants": []}
    assert "sessionEnded" not in ws_c.types()
