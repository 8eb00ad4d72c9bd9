# chat_relay/models/__init__.py
"""Import all models here so Base.metadata is complete for Alembic."""
from .base import Base
from .chat import ChatGroup, ChatMessage

__all__ = ["Base", "ChatGroup", "ChatMessage"]
