from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query

from ...schemas.chat_schemas import (
    ChatMessageOut, CreateMessageRequest, MessagePage, MessageResponse, UpdateReadStatusRequest
)
from ...services.auth.authorization import AccessContext, AuthorizationPolicy, Permission, ensure_authorized
from ...services.chat.chat_service import ChatService
from ...services.chat.context import ChatContext
from .dependencies import get_bearer_token, get_chat_service, get_policy

router = APIRouter(prefix="/api/messages", tags=["Messages"])

@router.post("", status_code=201, response_model=MessageResponse, response_model_by_alias=True)
async def create_message(
    request: CreateMessageRequest,
    service: ChatService = Depends(get_chat_service),
    policy: AuthorizationPolicy = Depends(get_policy),
    token: Optional[str] = Depends(get_bearer_token),
):
    """Post a message, creating the context's chat group on first use"""
    context = ChatContext.build(request.context_app, request.context_entity_type, request.context_entity_id)
    await ensure_authorized(policy, AccessContext(context, token), Permission.CREATE_MESSAGE)

    message = await service.post_message(request)
    return MessageResponse(data=ChatMessageOut.model_validate(message))

@router.get(
    "/{context_app}/{context_entity_type}/{context_entity_id}",
    response_model=MessagePage,
    response_model_by_alias=True,
)
async def get_messages_by_context(
    context_app: str,
    context_entity_type: str,
    context_entity_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: ChatService = Depends(get_chat_service),
    policy: AuthorizationPolicy = Depends(get_policy),
    token: Optional[str] = Depends(get_bearer_token),
):
    """Newest-first messages for a context"""
    context = ChatContext.build(context_app, context_entity_type, context_entity_id)
    await ensure_authorized(policy, AccessContext(context, token), Permission.LIST_MESSAGES)

    return await service.list_messages(context, page=page, limit=limit)

@router.patch("/{message_id}/status", response_model=MessageResponse, response_model_by_alias=True)
async def update_message_read_status(
    message_id: UUID,
    request: UpdateReadStatusRequest,
    service: ChatService = Depends(get_chat_service),
    policy: AuthorizationPolicy = Depends(get_policy),
    token: Optional[str] = Depends(get_bearer_token),
):
    """Set a message's read flag"""
    context = await service.get_message_context(message_id)
    await ensure_authorized(policy, AccessContext(context, token), Permission.CHANGE_STATUS)

    message = await service.mark_read(message_id, request.is_read)
    return MessageResponse(data=ChatMessageOut.model_validate(message))
