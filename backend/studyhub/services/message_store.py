"""Chat message persistence used by the group chat relay."""

import logging
from typing import Protocol

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from studyhub.core.timeutils import isoformat_utc, utcnow
from studyhub.models.message import Message

logger = logging.getLogger(__name__)


class MessageStoreError(Exception):
    pass


class MessageStore(Protocol):
    async def create_message(self, group_id: str, user_id: str, content: str) -> dict: ...


class SqlMessageStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    async def create_message(self, group_id: str, user_id: str, content: str) -> dict:
        """Persist a message and return its wire representation."""
        return await run_in_threadpool(self._create, group_id, user_id, content)

    def _create(self, group_id: str, user_id: str, content: str) -> dict:
        db: Session = self._session_factory()
        try:
            msg = Message(group_id=group_id, user_id=user_id, content=content, created_at=utcnow())
            db.add(msg)
            db.commit()
            db.refresh(msg)
            return {
                "id": msg.id,
                "groupId": msg.group_id,
                "userId": msg.user_id,
                "content": msg.content,
                "createdAt": isoformat_utc(msg.created_at),
            }
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Saving message for group %s failed: %s", group_id, exc)
            raise MessageStoreError(str(exc)) from exc
        finally:
            db.close()
