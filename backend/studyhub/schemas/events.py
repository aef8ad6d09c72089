"""Inbound WebSocket event payloads.

Field names are camelCase on the wire and snake_case in Python. Ids are
opaque non-empty strings; JS clients frequently send numeric ids, so ints
are coerced. SDP and ICE payloads are relayed untouched; the key must be
present but any JSON value (including null) is accepted.
"""

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

from studyhub.config import settings


ID_MAX_LENGTH = 128


def _coerce_id(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


Identifier = Annotated[
    str,
    BeforeValidator(_coerce_id),
    StringConstraints(strip_whitespace=True, min_length=1, max_length=ID_MAX_LENGTH),
]
DisplayName = Annotated[str, StringConstraints(strip_whitespace=True, max_length=100)]


class InboundEvent(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ── Group calls ──────────────────────────────────────────────────────────────


class JoinGroupCall(InboundEvent):
    group_id: Identifier
    user_id: Identifier
    user_name: DisplayName | None = None


class LeaveGroupCall(InboundEvent):
    group_id: Identifier
    user_id: Identifier | None = None
    user_name: DisplayName | None = None


class SignalEvent(InboundEvent):
    group_id: Identifier
    receiver_id: Identifier
    sender_name: DisplayName | None = None
    receiver_name: DisplayName | None = None


class OfferEvent(SignalEvent):
    offer: Any


class AnswerEvent(SignalEvent):
    answer: Any


class IceCandidateEvent(SignalEvent):
    candidate: Any


# ── Study sessions ───────────────────────────────────────────────────────────


class JoinSession(InboundEvent):
    session_id: Identifier
    user_id: Identifier
    user_name: DisplayName | None = None


class SessionRef(InboundEvent):
    """Payload for leaveSession, startSession and endSession."""

    session_id: Identifier


# ── Group chat ───────────────────────────────────────────────────────────────


class GroupRef(InboundEvent):
    group_id: Identifier


class SendMessage(InboundEvent):
    group_id: Identifier
    user_id: Identifier
    content: str = Field(..., max_length=settings.MAX_MESSAGE_LENGTH)

    @field_validator("content")
    @classmethod
    def require_content(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message must have content")
        return value


class TypingEvent(InboundEvent):
    group_id: Identifier
    user_id: Identifier | None = None
    user_name: DisplayName | None = None
