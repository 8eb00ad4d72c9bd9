# chat_relay/models/chat/chat_group.py
from sqlalchemy import Column, String, Index
from sqlalchemy.orm import relationship
from ..base import Base

class ChatGroup(Base):
    __tablename__ = "chat_groups"

    context_app = Column(String(255), nullable=False, index=True)
    context_entity_type = Column(String(255), nullable=False, index=True)
    context_entity_id = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=True)

    # Relationships
    messages = relationship("ChatMessage", back_populates="chat_group", lazy="noload")

    # One group per context triplet; the upsert in ChatRepository relies on this index
    __table_args__ = (
        Index('idx_chat_group_context', 'context_app', 'context_entity_type', 'context_entity_id', unique=True),
    )
