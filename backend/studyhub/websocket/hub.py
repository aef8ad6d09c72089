"""Wiring for the realtime layer.

RealtimeHub owns the connection manager and both presence registries and
hands them to each component through its constructor. One hub is created
per application (see main.lifespan); tests build their own.
"""

import logging
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import sessionmaker

from studyhub.core import events
from studyhub.schemas import events as schemas
from studyhub.services.message_store import MessageStore, SqlMessageStore
from studyhub.services.session_store import SessionStore, SqlSessionStore
from studyhub.websocket.call_handler import CallSignalingRelay
from studyhub.websocket.chat_handler import GroupChatRelay
from studyhub.websocket.lifecycle import ConnectionLifecycle
from studyhub.websocket.manager import ConnectionManager
from studyhub.websocket.registry import PresenceRegistry
from studyhub.websocket.session_handler import SessionCoordinator

logger = logging.getLogger(__name__)

Handler = Callable[[str, BaseModel], Awaitable[None]]


class RealtimeHub:
    def __init__(self, session_store: SessionStore, message_store: MessageStore) -> None:
        self.manager = ConnectionManager()
        self.call_registry = PresenceRegistry()
        self.session_registry = PresenceRegistry()

        self.calls = CallSignalingRelay(self.manager, self.call_registry)
        self.sessions = SessionCoordinator(self.manager, self.session_registry, session_store)
        self.chat = GroupChatRelay(self.manager, message_store)
        self.lifecycle = ConnectionLifecycle(
            self.manager, self.call_registry, self.session_registry, self.calls, self.sessions
        )

        self._routes: dict[str, tuple[type[BaseModel], Handler]] = {
            events.JOIN_GROUP_CALL: (schemas.JoinGroupCall, self.calls.join_call),
            events.LEAVE_GROUP_CALL: (schemas.LeaveGroupCall, self.calls.leave_call),
            events.OFFER: (schemas.OfferEvent, self.calls.relay_offer),
            events.ANSWER: (schemas.AnswerEvent, self.calls.relay_answer),
            events.ICE_CANDIDATE: (schemas.IceCandidateEvent, self.calls.relay_ice_candidate),
            events.JOIN_SESSION: (schemas.JoinSession, self.sessions.join_session),
            events.LEAVE_SESSION: (schemas.SessionRef, self.sessions.leave_session),
            events.START_SESSION: (schemas.SessionRef, self.sessions.start_session),
            events.END_SESSION: (schemas.SessionRef, self.sessions.end_session),
            events.JOIN_GROUP: (schemas.GroupRef, self.chat.join_group),
            events.LEAVE_GROUP: (schemas.GroupRef, self.chat.leave_group),
            events.SEND_MESSAGE: (schemas.SendMessage, self.chat.send_message),
            events.TYPING: (schemas.TypingEvent, self.chat.typing),
            events.STOP_TYPING: (schemas.TypingEvent, self.chat.stop_typing),
        }

    async def dispatch(self, connection_id: str, frame: dict) -> None:
        """Validate one inbound frame and run its handler to completion.

        Every failure stays local to this frame: the sender gets a scoped
        error and the connection stays open.
        """
        event_type = frame.get("type")
        route = self._routes.get(event_type) if isinstance(event_type, str) else None
        if route is None:
            logger.debug("Ignoring unknown event %r from %s", event_type, connection_id)
            return

        schema, handler = route
        try:
            event = schema.model_validate(frame)
        except ValidationError as exc:
            logger.info("Rejected %s from %s: %d validation error(s)", event_type, connection_id, exc.error_count())
            await self.manager.send_error(connection_id, f"Invalid payload for {event_type}", event_type)
            return

        try:
            await handler(connection_id, event)
        except Exception as exc:
            logger.error("Error handling %r from %s: %s", event_type, connection_id, exc, exc_info=True)
            await self.manager.send_error(connection_id, "Internal error", event_type)


def create_hub(session_factory: sessionmaker) -> RealtimeHub:
    return RealtimeHub(
        session_store=SqlSessionStore(session_factory),
        message_store=SqlMessageStore(session_factory),
    )
