"""Persistence for study-session lifecycle timestamps.

The realtime layer only ever flips two things on a session row: the start
(is_started + started_at) and the end (ended_at). Writes are plain
last-write-wins updates; concurrent start/end calls for the same session
are not serialised.
"""

import logging
from datetime import datetime
from typing import Protocol

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from studyhub.core.timeutils import utcnow
from studyhub.models.study_session import StudySession

logger = logging.getLogger(__name__)


class SessionStoreError(Exception):
    """Any failure to persist a session lifecycle change."""


class SessionNotFoundError(SessionStoreError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class SessionStore(Protocol):
    async def update_session_start(self, session_id: str) -> datetime: ...

    async def update_session_end(self, session_id: str) -> datetime: ...


class SqlSessionStore:
    """SessionStore backed by the SQLAlchemy `sessions` table.

    Each call opens its own DB session and runs in the thread pool, so the
    event loop keeps serving other connections while the write is in flight.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    async def update_session_start(self, session_id: str) -> datetime:
        return await run_in_threadpool(self._write, session_id, True)

    async def update_session_end(self, session_id: str) -> datetime:
        return await run_in_threadpool(self._write, session_id, False)

    def _write(self, session_id: str, start: bool) -> datetime:
        db: Session = self._session_factory()
        try:
            row = db.query(StudySession).filter(StudySession.id == session_id).first()
            if row is None:
                raise SessionNotFoundError(session_id)
            now = utcnow()
            if start:
                row.is_started = True
                row.started_at = now
            else:
                row.ended_at = now
            db.commit()
            db.refresh(row)
            return row.started_at if start else row.ended_at
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Session %s lifecycle write failed: %s", session_id, exc)
            raise SessionStoreError(str(exc)) from exc
        finally:
            db.close()
