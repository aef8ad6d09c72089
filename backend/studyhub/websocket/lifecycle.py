"""Connection open/close bookkeeping.

close() is the single cleanup path for a socket, however it ended (client
leave, network drop, protocol error). It removes the connection from every
call and session it was registered in and tells the remaining members of
each room. A failure while notifying one room is logged and does not stop
cleanup of the others.
"""

import logging

from fastapi import WebSocket

from studyhub.websocket.call_handler import CallSignalingRelay
from studyhub.websocket.manager import ConnectionManager
from studyhub.websocket.registry import PresenceRegistry
from studyhub.websocket.session_handler import SessionCoordinator

logger = logging.getLogger(__name__)


class ConnectionLifecycle:
    def __init__(
        self,
        manager: ConnectionManager,
        call_registry: PresenceRegistry,
        session_registry: PresenceRegistry,
        calls: CallSignalingRelay,
        sessions: SessionCoordinator,
    ) -> None:
        self._manager = manager
        self._call_registry = call_registry
        self._session_registry = session_registry
        self._calls = calls
        self._sessions = sessions
        self._open: set[str] = set()

    def open(self, connection_id: str, websocket: WebSocket) -> None:
        self._open.add(connection_id)
        self._manager.connect(connection_id, websocket)

    async def close(self, connection_id: str) -> None:
        if connection_id not in self._open:
            return
        self._open.discard(connection_id)

        left_calls = self._call_registry.remove_connection_everywhere(connection_id)
        left_sessions = self._session_registry.remove_connection_everywhere(connection_id)
        self._manager.disconnect(connection_id)

        for group_id, record in left_calls:
            try:
                await self._calls.announce_departure(group_id, record)
            except Exception:
                logger.exception("Call cleanup failed for %s in %s", connection_id, group_id)

        for session_id, record in left_sessions:
            try:
                await self._sessions.announce_departure(session_id, record)
            except Exception:
                logger.exception("Session cleanup failed for %s in %s", connection_id, session_id)

        logger.info(
            "Connection %s closed (calls left: %d, sessions left: %d)",
            connection_id,
            len(left_calls),
            len(left_sessions),
        )

    @property
    def open_connections(self) -> int:
        return len(self._open)
