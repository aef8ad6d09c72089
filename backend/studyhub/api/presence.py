"""
Presence REST endpoints — read-only views of the in-memory registries.

GET /api/calls/{group_id}/participants       → who is in a group call
GET /api/sessions/{session_id}/participants  → who is in a study session
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from studyhub.api.deps import get_hub
from studyhub.websocket.hub import RealtimeHub
from studyhub.websocket.registry import PresenceRegistry

router = APIRouter(tags=["presence"])


class Participant(BaseModel):
    socketId: str
    userId: str | None = None
    userName: str | None = None
    joinedAt: str | None = None


class CallParticipantsResponse(BaseModel):
    groupId: str
    participants: list[Participant]


class SessionParticipantsResponse(BaseModel):
    sessionId: str
    participants: list[Participant]


def _snapshot(registry: PresenceRegistry, room_id: str) -> list[Participant]:
    return [Participant(**p.to_dict()) for p in registry.list_participants(room_id)]


@router.get("/calls/{group_id}/participants", response_model=CallParticipantsResponse)
async def get_call_participants(group_id: str, hub: RealtimeHub = Depends(get_hub)) -> CallParticipantsResponse:
    return CallParticipantsResponse(groupId=group_id, participants=_snapshot(hub.call_registry, group_id))


@router.get("/sessions/{session_id}/participants", response_model=SessionParticipantsResponse)
async def get_session_participants(
    session_id: str, hub: RealtimeHub = Depends(get_hub)
) -> SessionParticipantsResponse:
    return SessionParticipantsResponse(sessionId=session_id, participants=_snapshot(hub.session_registry, session_id))
