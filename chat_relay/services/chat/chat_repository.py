# chat_relay/services/chat/chat_repository.py
"""Persistence boundary for chat groups and messages."""
import logging
from contextlib import asynccontextmanager
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update, func, and_, desc
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import ConflictError, NotFoundError, StoreUnavailable
from ...models.chat.chat_group import ChatGroup
from ...models.chat.chat_message import ChatMessage
from .context import ChatContext

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class ChatRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def _store_call(self, operation: str):
        """Map connectivity failures to StoreUnavailable"""
        try:
            yield
        except (OperationalError, InterfaceError, PoolTimeoutError, OSError) as e:
            logger.error(f"Store unavailable during {operation}: {e}")
            await self._rollback()
            raise StoreUnavailable() from e

    async def _rollback(self):
        try:
            await self.db.rollback()
        except Exception as e:
            logger.debug(f"Rollback after store failure also failed: {e}")

    def _upsert_insert(self):
        dialect = self.db.get_bind().dialect.name
        try:
            return _UPSERT_DIALECTS[dialect]
        except KeyError:
            raise RuntimeError(f"No atomic upsert available for dialect '{dialect}'")

    async def find_or_create_group(self, context: ChatContext, name: Optional[str] = None) -> ChatGroup:
        """Insert the group for a context, or return the one already there, in one statement.

        The unique triplet index arbitrates concurrent first writers. A
        uniqueness violation that still escapes the store is raised as
        ConflictError for the caller to resolve.
        """
        insert = self._upsert_insert()
        stmt = insert(ChatGroup).values(
            context_app=context.context_app,
            context_entity_type=context.context_entity_type,
            context_entity_id=context.context_entity_id,
            name=name,
        )
        # No-op update so the existing row is locked and returned; name is only set on insert
        stmt = stmt.on_conflict_do_update(
            index_elements=["context_app", "context_entity_type", "context_entity_id"],
            set_={"context_app": stmt.excluded.context_app},
        ).returning(ChatGroup).execution_options(populate_existing=True)

        async with self._store_call("find_or_create_group"):
            try:
                result = await self.db.execute(stmt)
                group = result.scalars().one()
                await self.db.commit()
            except IntegrityError as e:
                await self._rollback()
                raise ConflictError(f"Chat group for {context} was created concurrently") from e
        return group

    async def find_group(self, context: ChatContext) -> Optional[ChatGroup]:
        stmt = select(ChatGroup).where(
            and_(
                ChatGroup.context_app == context.context_app,
                ChatGroup.context_entity_type == context.context_entity_type,
                ChatGroup.context_entity_id == context.context_entity_id,
            )
        )
        async with self._store_call("find_group"):
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()

    async def get_group(self, group_id: UUID) -> Optional[ChatGroup]:
        async with self._store_call("get_group"):
            result = await self.db.execute(select(ChatGroup).where(ChatGroup.id == group_id))
            return result.scalar_one_or_none()

    async def insert_message(self, group_id: UUID, **fields) -> ChatMessage:
        message = ChatMessage(chat_group_id=group_id, **fields)
        async with self._store_call("insert_message"):
            self.db.add(message)
            await self.db.commit()
            await self.db.refresh(message)
        return message

    async def get_message(self, message_id: UUID) -> Optional[ChatMessage]:
        async with self._store_call("get_message"):
            result = await self.db.execute(select(ChatMessage).where(ChatMessage.id == message_id))
            return result.scalar_one_or_none()

    async def update_message_read_state(self, message_id: UUID, is_read: bool) -> ChatMessage:
        stmt = (
            update(ChatMessage)
            .where(ChatMessage.id == message_id)
            .values(is_read=is_read)
            .returning(ChatMessage)
            .execution_options(populate_existing=True)
        )
        async with self._store_call("update_message_read_state"):
            result = await self.db.execute(stmt)
            message = result.scalars().one_or_none()
            if message is None:
                await self._rollback()
                raise NotFoundError("Message", str(message_id))
            await self.db.commit()
        return message

    async def list_messages(self, group_id: UUID, offset: int = 0, limit: int = 20) -> List[ChatMessage]:
        """Messages of a group, newest first"""
        stmt = select(ChatMessage).where(
            ChatMessage.chat_group_id == group_id
        ).order_by(desc(ChatMessage.created_at), desc(ChatMessage.id)).offset(offset).limit(limit)

        async with self._store_call("list_messages"):
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

    async def count_messages(self, group_id: UUID) -> int:
        stmt = select(func.count()).select_from(ChatMessage).where(ChatMessage.chat_group_id == group_id)
        async with self._store_call("count_messages"):
            result = await self.db.execute(stmt)
            return result.scalar_one()
