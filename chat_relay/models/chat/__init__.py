# chat_relay/models/chat/__init__.py
from .chat_group import ChatGroup
from .chat_message import ChatMessage

__all__ = ["ChatGroup", "ChatMessage"]
