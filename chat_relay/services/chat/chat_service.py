# chat_relay/services/chat/chat_service.py
import logging
import math
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ...core.cache import CacheManager
from ...core.exceptions import NotFoundError, TransportUnavailable, ValidationError
from ...models.chat.chat_message import ChatMessage
from ...schemas.chat_schemas import ChatMessageOut, CreateMessageRequest, MessagePage
from .chat_repository import ChatRepository
from .context import ChatContext
from .group_resolver import GroupResolver
from .room_broadcaster import RoomBroadcaster

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class ChatService:
    def __init__(
        self,
        db: AsyncSession,
        broadcaster: Optional[RoomBroadcaster] = None,
        cache: Optional[CacheManager] = None,
    ):
        self.repository = ChatRepository(db)
        self.resolver = GroupResolver(self.repository)
        self.broadcaster = broadcaster
        self.cache = cache

    async def post_message(self, request: CreateMessageRequest) -> ChatMessage:
        """Resolve the request's chat group and append the message to it"""
        context = ChatContext.build(request.context_app, request.context_entity_type, request.context_entity_id)
        self._validate_message_fields(request.sender_user_id, request.sender_name, request.text, request.file_id)

        group = await self.resolver.resolve_context(context, _clean(request.group_name))
        return await self.append_message(
            group.id,
            text=request.text,
            file_id=request.file_id,
            sender_user_id=request.sender_user_id,
            sender_name=request.sender_name,
            sender_company_id=request.sender_company_id,
            sender_company_name=request.sender_company_name,
        )

    @staticmethod
    def _validate_message_fields(sender_user_id, sender_name, text, file_id):
        errors = []
        if not _clean(sender_user_id):
            errors.append("senderUserId is required")
        if not _clean(sender_name):
            errors.append("senderName is required")
        if not _clean(text) and not _clean(file_id):
            errors.append("Either message or fileId must be provided.")
        if errors:
            raise ValidationError("Invalid message", errors=errors)

    async def append_message(
        self,
        group_id: UUID,
        *,
        sender_user_id: str,
        sender_name: str,
        text: Optional[str] = None,
        file_id: Optional[str] = None,
        sender_company_id: Optional[str] = None,
        sender_company_name: Optional[str] = None,
        **ignored,
    ) -> ChatMessage:
        """Persist a message unread and announce it to the group's room"""
        self._validate_message_fields(sender_user_id, sender_name, text, file_id)
        if ignored:
            logger.debug(f"Ignoring fields on message creation: {sorted(ignored)}")

        message = await self.repository.insert_message(
            group_id,
            text=_clean(text),
            file_id=_clean(file_id),
            sender_user_id=sender_user_id.strip(),
            sender_name=sender_name.strip(),
            sender_company_id=_clean(sender_company_id),
            sender_company_name=_clean(sender_company_name),
            is_read=False,
        )
        logger.info(f"Message {message.id} saved to chat group {group_id}")

        if self.broadcaster is None:
            logger.error("Room broadcaster not available for message emission")
            return message
        try:
            self.broadcaster.publish_message_created(message)
        except TransportUnavailable as e:
            logger.error(f"Could not broadcast message {message.id}: {e.message}")
        return message

    async def mark_read(self, message_id: UUID, is_read: bool) -> ChatMessage:
        """Set a message's read flag and tell its room"""
        message = await self.repository.update_message_read_state(message_id, is_read)

        # Resolve the room from the stored group, never from cached state
        group = await self.repository.get_group(message.chat_group_id)
        if group is None:
            logger.error(f"Data inconsistency: ChatGroup not found for message {message_id}")
            return message

        if self.broadcaster is None:
            logger.error("Room broadcaster not available for read-status emission")
            return message
        try:
            self.broadcaster.publish_read_status(message.id, group.id, message.is_read)
        except TransportUnavailable as e:
            logger.error(f"Could not broadcast read status of {message.id}: {e.message}")
        return message

    async def get_message_context(self, message_id: UUID) -> ChatContext:
        """The context a message belongs to, for authorization checks"""
        message = await self.repository.get_message(message_id)
        if message is None:
            raise NotFoundError("Message", str(message_id))
        group = await self.repository.get_group(message.chat_group_id)
        if group is None:
            logger.error(f"Data inconsistency: ChatGroup not found for message {message_id}")
            raise NotFoundError("Associated chat group")
        return ChatContext(group.context_app, group.context_entity_type, group.context_entity_id)

    async def _find_group_id(self, context: ChatContext) -> Optional[UUID]:
        if self.cache is not None:
            cached = await self.cache.get(context.cache_key)
            if cached:
                return UUID(cached)

        group = await self.repository.find_group(context)
        if group is None:
            return None
        # Only hits are cached; a miss can turn into a group at any moment
        if self.cache is not None:
            await self.cache.set(context.cache_key, str(group.id))
        return group.id

    async def list_messages(self, context: ChatContext, page: int = 1, limit: int = 20) -> MessagePage:
        """Newest-first page of a context's messages; unknown contexts are empty"""
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive integers")

        group_id = await self._find_group_id(context)
        if group_id is None:
            return MessagePage(
                chat_group_id=None, count=0, total_messages=0,
                current_page=page, total_pages=0, data=[],
            )

        messages = await self.repository.list_messages(group_id, offset=(page - 1) * limit, limit=limit)
        total_messages = await self.repository.count_messages(group_id)

        return MessagePage(
            chat_group_id=group_id,
            count=len(messages),
            total_messages=total_messages,
            current_page=page,
            total_pages=math.ceil(total_messages / limit),
            data=[ChatMessageOut.model_validate(message) for message in messages],
        )
