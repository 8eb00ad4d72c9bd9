# chat_relay/services/chat/__init__.py
from .chat_service import ChatService
from .group_resolver import GroupResolver
from .room_broadcaster import RoomBroadcaster
from .subscription_manager import SubscriptionManager
from .websocket_manager import WebSocketManager

__all__ = ["ChatService", "GroupResolver", "RoomBroadcaster", "SubscriptionManager", "WebSocketManager"]
