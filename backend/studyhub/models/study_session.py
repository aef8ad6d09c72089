import uuid

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.sql import func

from studyhub.database import Base
from studyhub.schemas.events import ID_MAX_LENGTH


def _new_id() -> str:
    return uuid.uuid4().hex


class StudySession(Base):
    __tablename__ = "sessions"

    id = Column(String(ID_MAX_LENGTH), primary_key=True, default=_new_id)
    group_id = Column(String(ID_MAX_LENGTH), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    creator_id = Column(String(ID_MAX_LENGTH), nullable=True)

    # Lifecycle fields — written only by the realtime start/end events
    is_started = Column(Boolean, default=False, nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
