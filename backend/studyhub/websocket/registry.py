"""In-memory presence registry.

Tracks which live connections currently participate in which rooms:

    room_id -> {connection_id: ParticipantRecord}

One instance is kept per room kind (calls, sessions), so a connection can
sit in a call room and a session room at the same time without collision.
Rooms exist only while they have at least one participant; the last leave
prunes the entry.

Single-process only: nothing here is shared across workers or survives a
restart. All methods are synchronous so a handler's read-modify-write is
never interleaved with another connection's handler.
"""

from dataclasses import dataclass, field
from datetime import datetime

from studyhub.core.timeutils import isoformat_utc, utcnow


@dataclass(frozen=True)
class ParticipantRecord:
    connection_id: str
    user_id: str | None = None
    user_name: str | None = None
    joined_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "socketId": self.connection_id,
            "userId": self.user_id,
            "userName": self.user_name,
            "joinedAt": isoformat_utc(self.joined_at),
        }


class PresenceRegistry:
    def __init__(self) -> None:
        self._rooms: dict[str, dict[str, ParticipantRecord]] = {}

    def join(self, room_id: str, connection_id: str, participant: ParticipantRecord) -> None:
        """Insert or replace the record for *connection_id* (last write wins)."""
        self._rooms.setdefault(room_id, {})[connection_id] = participant

    def leave(self, room_id: str, connection_id: str) -> ParticipantRecord | None:
        """Remove and return the record, or None if it was not there."""
        participants = self._rooms.get(room_id)
        if participants is None:
            return None
        record = participants.pop(connection_id, None)
        if not participants:
            del self._rooms[room_id]
        return record

    def get(self, room_id: str, connection_id: str) -> ParticipantRecord | None:
        return self._rooms.get(room_id, {}).get(connection_id)

    def has(self, room_id: str, connection_id: str) -> bool:
        return connection_id in self._rooms.get(room_id, {})

    def list_participants(self, room_id: str) -> list[ParticipantRecord]:
        """Snapshot of a room's participants in join order."""
        return list(self._rooms.get(room_id, {}).values())

    def rooms(self) -> list[str]:
        return list(self._rooms)

    def discard_room(self, room_id: str) -> list[ParticipantRecord]:
        """Drop a room wholesale, returning whoever was in it."""
        return list(self._rooms.pop(room_id, {}).values())

    def remove_connection_everywhere(self, connection_id: str) -> list[tuple[str, ParticipantRecord]]:
        removed: list[tuple[str, ParticipantRecord]] = []
        for room_id in list(self._rooms):
            if connection_id in self._rooms[room_id]:
                record = self.leave(room_id, connection_id)
                if record is not None:
                    removed.append((room_id, record))
        return removed

    def __len__(self) -> int:
        return len(self._rooms)
