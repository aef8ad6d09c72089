from pydantic import BaseModel

from studyhub.core.timeutils import isoformat_utc
from studyhub.models.study_session import StudySession


class SessionResponse(BaseModel):
    id: str
    groupId: str
    name: str
    isStarted: bool
    startedAt: str | None = None
    endedAt: str | None = None

    @classmethod
    def from_model(cls, session: StudySession) -> "SessionResponse":
        # Same timestamp format as the socket events
        return cls(
            id=session.id,
            groupId=session.group_id,
            name=session.name,
            isStarted=bool(session.is_started),
            startedAt=isoformat_utc(session.started_at),
            endedAt=isoformat_utc(session.ended_at),
        )
