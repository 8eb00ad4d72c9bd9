# chat_relay/services/chat/group_resolver.py
import logging
from typing import Optional

from ...core.exceptions import ConflictError, StoreUnavailable
from ...models.chat.chat_group import ChatGroup
from .chat_repository import ChatRepository
from .context import ChatContext

logger = logging.getLogger(__name__)


class GroupResolver:
    """Maps a context triplet to its single chat group, creating it on first use."""

    def __init__(self, repository: ChatRepository):
        self.repository = repository

    async def resolve(
        self,
        context_app: str,
        context_entity_type: str,
        context_entity_id: str,
        name: Optional[str] = None,
    ) -> ChatGroup:
        context = ChatContext.build(context_app, context_entity_type, context_entity_id)
        return await self.resolve_context(context, name)

    async def resolve_context(self, context: ChatContext, name: Optional[str] = None) -> ChatGroup:
        try:
            return await self.repository.find_or_create_group(context, name)
        except ConflictError:
            # A competing insert won; its row is the group
            logger.warning(f"Duplicate key during chat group upsert for {context}, retrying find")
            group = await self.repository.find_group(context)
            if group is None:
                logger.error(f"Chat group for {context} missing after duplicate key error")
                raise StoreUnavailable("Failed to find chat group after duplicate key error")
            return group
