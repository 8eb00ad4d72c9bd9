# chat_relay/models/chat/chat_message.py
from sqlalchemy import Column, String, Text, Boolean, CheckConstraint, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship
from ..base import Base

class ChatMessage(Base):
    __tablename__ = "chat_messages"

    chat_group_id = Column(Uuid(as_uuid=True), ForeignKey("chat_groups.id"), nullable=False, index=True)
    text = Column(Text, nullable=True)
    sender_user_id = Column(String(255), nullable=False, index=True)
    sender_name = Column(String(255), nullable=False)
    sender_company_id = Column(String(255), nullable=True)
    sender_company_name = Column(String(255), nullable=True)
    file_id = Column(String(255), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)

    # Relationships
    chat_group = relationship("ChatGroup", back_populates="messages", lazy="noload")

    # Index for efficient queries
    __table_args__ = (
        Index('idx_chat_message_group_time', 'chat_group_id', 'created_at'),
        Index('idx_chat_message_unread', 'chat_group_id', 'is_read'),
        CheckConstraint("text IS NOT NULL OR file_id IS NOT NULL", name="ck_chat_message_has_body"),
    )
