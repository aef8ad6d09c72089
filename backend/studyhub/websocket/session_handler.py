"""Study session presence and start/end lifecycle.

Sessions differ from calls in that their state outlives the sockets: start
and end are persisted, and ending a session throws away its participant
tracking in one go instead of waiting for everyone to leave.

start/end await the session store. Other connections' events (including a
join or leave on the same session) may run while that write is in flight;
nothing serialises them.
"""

import logging

from studyhub.core import events
from studyhub.core.timeutils import isoformat_utc
from studyhub.schemas.events import JoinSession, SessionRef
from studyhub.services.session_store import SessionStore
from studyhub.websocket.manager import ConnectionManager, session_group
from studyhub.websocket.registry import ParticipantRecord, PresenceRegistry

logger = logging.getLogger(__name__)


class SessionCoordinator:
    def __init__(self, manager: ConnectionManager, registry: PresenceRegistry, store: SessionStore) -> None:
        self._manager = manager
        self._registry = registry
        self._store = store

    async def join_session(self, connection_id: str, event: JoinSession) -> None:
        session_id = event.session_id

        for room_id in self._sessions_of(connection_id):
            if room_id != session_id:
                await self._depart(room_id, connection_id)

        self._manager.join_group(session_group(session_id), connection_id)
        record = ParticipantRecord(
            connection_id=connection_id,
            user_id=event.user_id,
            user_name=event.user_name,
        )
        self._registry.join(session_id, connection_id, record)

        others = [
            p.to_dict() for p in self._registry.list_participants(session_id) if p.connection_id != connection_id
        ]
        logger.info("User %s (%s) joined session %s", event.user_name or event.user_id, connection_id, session_id)

        await self._manager.send_to(
            connection_id,
            {"type": events.SESSION_PARTICIPANTS, "sessionId": session_id, "participants": others},
        )
        await self._manager.broadcast(
            session_group(session_id),
            {"type": events.USER_JOINED_SESSION, "sessionId": session_id, **record.to_dict()},
            exclude=connection_id,
        )

    async def leave_session(self, connection_id: str, event: SessionRef) -> None:
        await self._depart(event.session_id, connection_id)

    def _sessions_of(self, connection_id: str) -> list[str]:
        """Sessions the connection is tracked in or still receives broadcasts for.

        An ended session keeps its broadcast group but not its registry room.
        """
        prefix = session_group("")
        found = {room_id for room_id in self._registry.rooms() if self._registry.has(room_id, connection_id)}
        found.update(
            label[len(prefix):] for label in self._manager.groups_of(connection_id) if label.startswith(prefix)
        )
        return sorted(found)

    async def _depart(self, session_id: str, connection_id: str) -> None:
        label = session_group(session_id)
        in_group = connection_id in self._manager.group_members(label)
        record = self._registry.leave(session_id, connection_id)
        self._manager.leave_group(label, connection_id)
        if record is None and not in_group:
            return
        logger.info("Connection %s left session %s", connection_id, session_id)
        await self.announce_departure(
            session_id, record or ParticipantRecord(connection_id=connection_id)
        )

    async def announce_departure(self, session_id: str, record: ParticipantRecord) -> None:
        await self._manager.broadcast(
            session_group(session_id),
            {
                "type": events.USER_LEFT_SESSION,
                "sessionId": session_id,
                "socketId": record.connection_id,
                "userId": record.user_id,
                "userName": record.user_name,
            },
            exclude=record.connection_id,
        )

    async def start_session(self, connection_id: str, event: SessionRef) -> None:
        session_id = event.session_id
        try:
            started_at = await self._store.update_session_start(session_id)
        except Exception as exc:
            logger.error("Error starting session %s: %s", session_id, exc)
            await self._manager.send_error(connection_id, "Failed to start session", events.START_SESSION)
            return

        logger.info("Session %s started by %s", session_id, connection_id)
        await self._manager.broadcast(
            session_group(session_id),
            {"type": events.SESSION_STARTED, "sessionId": session_id, "startedAt": isoformat_utc(started_at)},
        )

    async def end_session(self, connection_id: str, event: SessionRef) -> None:
        session_id = event.session_id
        try:
            ended_at = await self._store.update_session_end(session_id)
        except Exception as exc:
            logger.error("Error ending session %s: %s", session_id, exc)
            await self._manager.send_error(connection_id, "Failed to end session", events.END_SESSION)
            return

        logger.info("Session %s ended by %s", session_id, connection_id)
        # Cleared before the broadcast; a join arriving during the sends stays tracked
        dropped = self._registry.discard_room(session_id)
        logger.debug("Cleared %d participant(s) from session %s", len(dropped), session_id)
        await self._manager.broadcast(
            session_group(session_id),
            {"type": events.SESSION_ENDED, "sessionId": session_id, "endedAt": isoformat_utc(ended_at)},
        )
