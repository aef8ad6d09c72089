"""Group call presence and WebRTC signaling relay.

Participants announce themselves with joinGroupCall, receive the list of
peers already in the call, and then negotiate one peer connection per pair
by relaying offer / answer / iceCandidate frames through the server. The
server never looks inside SDP or ICE payloads; it only routes them to the
single connection they are addressed to.
"""

import logging
from typing import Any

from studyhub.core import events
from studyhub.schemas.events import (
    AnswerEvent,
    IceCandidateEvent,
    JoinGroupCall,
    LeaveGroupCall,
    OfferEvent,
)
from studyhub.websocket.manager import ConnectionManager, call_group
from studyhub.websocket.registry import ParticipantRecord, PresenceRegistry

logger = logging.getLogger(__name__)

RECIPIENT_NOT_FOUND = "Recipient not found in call"


class CallSignalingRelay:
    def __init__(self, manager: ConnectionManager, registry: PresenceRegistry) -> None:
        self._manager = manager
        self._registry = registry

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    async def join_call(self, connection_id: str, event: JoinGroupCall) -> None:
        group_id = event.group_id

        # A connection takes part in at most one call at a time
        for room_id in self._registry.rooms():
            if room_id != group_id and self._registry.has(room_id, connection_id):
                await self._depart(room_id, connection_id)

        record = ParticipantRecord(
            connection_id=connection_id,
            user_id=event.user_id,
            user_name=event.user_name,
        )
        self._registry.join(group_id, connection_id, record)
        self._manager.join_group(call_group(group_id), connection_id)

        peers = [
            {"socketId": p.connection_id, "userId": p.user_id, "userName": p.user_name}
            for p in self._registry.list_participants(group_id)
            if p.connection_id != connection_id
        ]
        logger.info(
            "User %s (%s) joined call %s with %d peer(s)", event.user_id, connection_id, group_id, len(peers)
        )

        await self._manager.send_to(
            connection_id,
            {"type": events.EXISTING_PARTICIPANTS, "groupId": group_id, "participants": peers},
        )
        await self._manager.broadcast(
            call_group(group_id),
            {
                "type": events.USER_JOINED_CALL,
                "groupId": group_id,
                "socketId": connection_id,
                "userId": event.user_id,
                "userName": event.user_name,
            },
            exclude=connection_id,
        )

    async def leave_call(self, connection_id: str, event: LeaveGroupCall) -> None:
        await self._depart(event.group_id, connection_id)

    async def _depart(self, group_id: str, connection_id: str) -> None:
        record = self._registry.leave(group_id, connection_id)
        self._manager.leave_group(call_group(group_id), connection_id)
        if record is None:
            return
        logger.info("User %s (%s) left call %s", record.user_id, connection_id, group_id)
        await self.announce_departure(group_id, record)

    async def announce_departure(self, group_id: str, record: ParticipantRecord) -> None:
        """Tell the rest of a call that *record*'s connection is gone."""
        await self._manager.broadcast(
            call_group(group_id),
            {
                "type": events.USER_LEFT_CALL,
                "groupId": group_id,
                "socketId": record.connection_id,
                "userId": record.user_id,
                "userName": record.user_name,
            },
            exclude=record.connection_id,
        )

    # ------------------------------------------------------------------
    # Signaling
    # ------------------------------------------------------------------

    async def relay_offer(self, connection_id: str, event: OfferEvent) -> None:
        # Only offers are checked against the call registry
        if not self._registry.has(event.group_id, event.receiver_id):
            logger.info(
                "Offer from %s to %s dropped: not in call %s", connection_id, event.receiver_id, event.group_id
            )
            await self._manager.send_error(connection_id, RECIPIENT_NOT_FOUND, events.OFFER)
            return
        await self._forward(connection_id, events.OFFER, "offer", event.offer, event)

    async def relay_answer(self, connection_id: str, event: AnswerEvent) -> None:
        await self._forward(connection_id, events.ANSWER, "answer", event.answer, event)

    async def relay_ice_candidate(self, connection_id: str, event: IceCandidateEvent) -> None:
        await self._forward(connection_id, events.ICE_CANDIDATE, "candidate", event.candidate, event)

    async def _forward(self, sender_id: str, event_type: str, key: str, body: Any, event) -> None:
        delivered = await self._manager.send_to(
            event.receiver_id,
            {
                "type": event_type,
                "groupId": event.group_id,
                key: body,
                "senderId": sender_id,
                "senderName": event.sender_name,
                "receiverName": event.receiver_name,
            },
        )
        if delivered:
            logger.debug("Relayed %s %s -> %s in call %s", event_type, sender_id, event.receiver_id, event.group_id)
        else:
            logger.debug("Relay %s %s -> %s undeliverable", event_type, sender_id, event.receiver_id)
