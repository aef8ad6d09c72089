import json
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def call_group(group_id: str) -> str:
    return f"call:{group_id}"


def session_group(session_id: str) -> str:
    return f"session:{session_id}"


def chat_group(group_id: str) -> str:
    return f"group:{group_id}"


class ConnectionManager:
    """Live WebSocket connections and the broadcast groups they belong to.

    Connections are keyed by a server-assigned connection id, so the same
    user may hold several sockets at once. Broadcast groups are plain labels
    (see call_group / session_group / chat_group) mapped to the set of
    connection ids that should receive a room-wide send.

    Group membership is the delivery list for broadcasts; it is separate
    from the presence registries, which only record who has completed a
    join handshake.
    """

    def __init__(self) -> None:
        # connection_id -> WebSocket
        self._connections: dict[str, WebSocket] = {}
        # group label -> {connection_id}
        self._groups: dict[str, set[str]] = {}

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def connect(self, connection_id: str, websocket: WebSocket) -> None:
        """Register an already-accepted WebSocket."""
        self._connections[connection_id] = websocket
        logger.info("WebSocket connected (%s)", connection_id)

    def disconnect(self, connection_id: str) -> bool:
        """Forget a connection and drop it from every group.

        Returns False if the connection was already gone.
        """
        for label in self.groups_of(connection_id):
            self.leave_group(label, connection_id)
        known = self._connections.pop(connection_id, None) is not None
        if known:
            logger.info("WebSocket disconnected (%s)", connection_id)
        return known

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._connections

    # ------------------------------------------------------------------
    # Broadcast groups
    # ------------------------------------------------------------------

    def join_group(self, label: str, connection_id: str) -> None:
        self._groups.setdefault(label, set()).add(connection_id)

    def leave_group(self, label: str, connection_id: str) -> None:
        members = self._groups.get(label)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._groups[label]

    def group_members(self, label: str) -> list[str]:
        return list(self._groups.get(label, ()))

    def groups_of(self, connection_id: str) -> list[str]:
        return [label for label, members in self._groups.items() if connection_id in members]

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    async def send_to(self, connection_id: str, payload: dict) -> bool:
        """Send a JSON payload to one connection.

        Returns True if delivered, False if the connection is unknown or the
        send failed (the connection is dropped in that case).
        """
        ws = self._connections.get(connection_id)
        if ws is None:
            return False
        try:
            await ws.send_text(json.dumps(payload))
            return True
        except Exception:
            logger.warning("Send to %s failed, dropping connection", connection_id)
            self._connections.pop(connection_id, None)
            return False

    async def broadcast(self, label: str, payload: dict, exclude: str | None = None) -> None:
        """Send a JSON payload to every connection in a broadcast group."""
        # Recipients are fixed before the first await
        recipients = [cid for cid in self.group_members(label) if cid != exclude]
        data = json.dumps(payload)
        dead: list[str] = []
        for cid in recipients:
            ws = self._connections.get(cid)
            if ws is None:
                continue
            try:
                await ws.send_text(data)
            except Exception:
                dead.append(cid)
        for cid in dead:
            logger.warning("Broadcast to %s failed, dropping connection", cid)
            self._connections.pop(cid, None)

    async def send_error(self, connection_id: str, message: str, event: str | None = None) -> None:
        """Send a scoped error notification to a single connection."""
        payload: dict = {"type": "error", "message": message}
        if event is not None:
            payload["event"] = event
        await self.send_to(connection_id, payload)
