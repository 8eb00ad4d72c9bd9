# chat_relay/services/chat/subscription_manager.py
import logging

from .rooms import is_room_prefixed, parse_room_token
from .websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)


class SubscriptionManager:
    """Validates room tokens before touching room membership."""

    def __init__(self, manager: WebSocketManager):
        self.manager = manager

    def _reject(self, connection_id: str, room_token, event: str) -> bool:
        if is_room_prefixed(room_token):
            message = "Invalid room name format (invalid group ID)."
        else:
            message = "Invalid room name format (must start with chat-)."
        logger.warning(f"Client {connection_id} sent {event} for invalid room {room_token!r}")
        self.manager.send_personal_message({
            "type": event,
            "data": {"room": room_token if isinstance(room_token, str) else None, "message": message}
        }, connection_id)
        return False

    def join(self, connection_id: str, room_token) -> bool:
        """Subscribe a connection to a room; joining twice is harmless"""
        if parse_room_token(room_token) is None:
            return self._reject(connection_id, room_token, "join-error")

        if not self.manager.add_to_room(connection_id, room_token):
            return False
        logger.info(f"Client {connection_id} joining room: {room_token}")
        self.manager.send_personal_message({"type": "room-joined", "data": {"room": room_token}}, connection_id)
        return True

    def leave(self, connection_id: str, room_token) -> bool:
        """Unsubscribe a connection; leaving a room never joined is harmless"""
        if parse_room_token(room_token) is None:
            return self._reject(connection_id, room_token, "leave-error")

        self.manager.remove_from_room(connection_id, room_token)
        logger.info(f"Client {connection_id} leaving room: {room_token}")
        self.manager.send_personal_message({"type": "room-left", "data": {"room": room_token}}, connection_id)
        return True
