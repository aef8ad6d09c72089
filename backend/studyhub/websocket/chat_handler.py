import logging

from studyhub.core import events
from studyhub.schemas.events import GroupRef, SendMessage, TypingEvent
from studyhub.services.message_store import MessageStore
from studyhub.websocket.manager import ConnectionManager, chat_group

logger = logging.getLogger(__name__)


class GroupChatRelay:
    """Study-group text chat: room membership, messages and typing indicators."""

    def __init__(self, manager: ConnectionManager, store: MessageStore) -> None:
        self._manager = manager
        self._store = store

    async def join_group(self, connection_id: str, event: GroupRef) -> None:
        self._manager.join_group(chat_group(event.group_id), connection_id)
        logger.info("Connection %s joined group %s", connection_id, event.group_id)
        await self._manager.send_to(connection_id, {"type": events.JOINED_GROUP, "groupId": event.group_id})

    async def leave_group(self, connection_id: str, event: GroupRef) -> None:
        self._manager.leave_group(chat_group(event.group_id), connection_id)

    async def send_message(self, connection_id: str, event: SendMessage) -> None:
        try:
            message = await self._store.create_message(event.group_id, event.user_id, event.content)
        except Exception as exc:
            logger.error("Error sending message to group %s: %s", event.group_id, exc)
            await self._manager.send_error(connection_id, "Message sending failed", events.SEND_MESSAGE)
            return
        # Sender included
        await self._manager.broadcast(chat_group(event.group_id), {"type": events.MESSAGE, **message})

    async def typing(self, connection_id: str, event: TypingEvent) -> None:
        await self._relay_typing(connection_id, events.TYPING, event)

    async def stop_typing(self, connection_id: str, event: TypingEvent) -> None:
        await self._relay_typing(connection_id, events.STOP_TYPING, event)

    async def _relay_typing(self, connection_id: str, event_type: str, event: TypingEvent) -> None:
        await self._manager.broadcast(
            chat_group(event.group_id),
            {"type": event_type, "groupId": event.group_id, "userId": event.user_id, "userName": event.user_name},
            exclude=connection_id,
        )
