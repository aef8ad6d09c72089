"""
Pytest fixtures shared across all test modules.
Uses an in-memory SQLite database with StaticPool so all connections
share a single in-memory DB — no real Postgres required for tests.
Each test gets a fresh RealtimeHub, so presence never leaks between tests.
"""

import os

# Set env vars BEFORE any studyhub module is imported
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Import studyhub modules AFTER env vars are set
from studyhub.api.deps import get_hub  # noqa: E402
from studyhub.database import Base, get_db  # noqa: E402
from studyhub.main import app  # noqa: E402
from studyhub.models.message import Message  # noqa: E402,F401
from studyhub.models.study_session import StudySession  # noqa: E402
from studyhub.websocket.hub import create_hub  # noqa: E402

engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_db():
    """Create tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def hub():
    return create_hub(TestingSessionLocal)


@pytest.fixture()
def client(db, hub):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_hub] = lambda: hub
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def study_session():
    """A persisted, not-yet-started session with id "s1"."""
    session = TestingSessionLocal()
    try:
        session.add(StudySession(id="s1", group_id="g1", name="Linear algebra"))
        session.commit()
    finally:
        session.close()
    return "s1"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def open_socket(ws) -> str:
    """Read the `connected` greeting and return the server-assigned socket id."""
    hello = ws.receive_json()
    assert hello["type"] == "connected"
    return hello["socketId"]


def join_call(ws, group_id: str, user_id: str, user_name: str | None = None) -> dict:
    """Join a call and return the existingParticipants frame."""
    ws.send_json({"type": "joinGroupCall", "groupId": group_id, "userId": user_id, "userName": user_name})
    event = ws.receive_json()
    assert event["type"] == "existingParticipants", event
    return event


def join_session(ws, session_id: str, user_id: str, user_name: str | None = None) -> dict:
    """Join a session and return the sessionParticipants frame."""
    ws.send_json({"type": "joinSession", "sessionId": session_id, "userId": user_id, "userName": user_name})
    event = ws.receive_json()
    assert event["type"] == "sessionParticipants", event
    return event


def fake_offer(sdp: str = "v=0 fake") -> dict:
    return {"type": "offer", "sdp": sdp}


class FakeWebSocket:
    """Stands in for a Starlette WebSocket in unit tests; records sent frames."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict] = []
        self.fail = fail

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(data))

    def types(self) -> list[str]:
        return [frame["type"] for frame in self.sent]
