# chat_relay/services/chat/room_broadcaster.py
import logging
from typing import Union
from uuid import UUID

from ...models.chat.chat_message import ChatMessage
from ...schemas.chat_schemas import ChatMessageOut
from .rooms import room_identity
from .websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)

MESSAGE_CREATED = "message-created"
READ_STATUS_CHANGED = "read-status-changed"


class RoomBroadcaster:
    """Best-effort, at-most-once delivery of chat events to room subscribers."""

    def __init__(self, manager: WebSocketManager):
        self.manager = manager

    def publish(self, room: str, event: str, payload: dict) -> int:
        """Fire-and-forget; zero subscribers is not an error"""
        return self.manager.broadcast_to_room({"type": event, "data": payload}, room)

    def publish_message_created(self, message: ChatMessage) -> int:
        room = room_identity(message.chat_group_id)
        payload = ChatMessageOut.model_validate(message).model_dump(mode="json", by_alias=True)
        delivered = self.publish(room, MESSAGE_CREATED, payload)
        logger.info(f"Emitted {MESSAGE_CREATED} to room: {room} ({delivered} recipients)")
        return delivered

    def publish_read_status(self, message_id: UUID, group_id: Union[UUID, str], is_read: bool) -> int:
        room = room_identity(group_id)
        delivered = self.publish(room, READ_STATUS_CHANGED, {
            "messageId": str(message_id),
            "groupId": str(group_id),
            "isRead": is_read,
        })
        logger.info(
            f"Emitted {READ_STATUS_CHANGED} to room: {room} for message {message_id}. New status: {is_read}"
        )
        return delivered
