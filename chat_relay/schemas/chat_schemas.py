from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateMessageRequest(CamelModel):
    context_app: str
    context_entity_type: str
    context_entity_id: str
    sender_user_id: str
    sender_name: str
    sender_company_id: Optional[str] = None
    sender_company_name: Optional[str] = None
    # Clients send the body as "message"
    text: Optional[str] = Field(None, validation_alias=AliasChoices("message", "text"))
    file_id: Optional[str] = None
    group_name: Optional[str] = None


class UpdateReadStatusRequest(CamelModel):
    is_read: StrictBool


class ChatMessageOut(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    chat_group_id: UUID
    text: Optional[str] = None
    sender_user_id: str
    sender_name: str
    sender_company_id: Optional[str] = None
    sender_company_name: Optional[str] = None
    file_id: Optional[str] = None
    is_read: bool
    created_at: datetime


class MessageResponse(CamelModel):
    success: bool = True
    data: ChatMessageOut


class MessagePage(CamelModel):
    success: bool = True
    chat_group_id: Optional[UUID] = None
    count: int
    total_messages: int
    current_page: int
    total_pages: int
    data: List[ChatMessageOut]
