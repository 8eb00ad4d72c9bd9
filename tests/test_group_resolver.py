import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError, TimeoutError as PoolTimeoutError

from chat_relay.core.exceptions import ConflictError, StoreUnavailable, ValidationError
from chat_relay.models.chat.chat_group import ChatGroup
from chat_relay.services.chat.chat_repository import ChatRepository
from chat_relay.services.chat.context import ChatContext
from chat_relay.services.chat.group_resolver import GroupResolver


async def _group_count(db) -> int:
    result = await db.execute(select(func.count()).select_from(ChatGroup))
    return result.scalar_one()


async def test_resolve_creates_group_on_first_use(db):
    resolver = GroupResolver(ChatRepository(db))

    group = await resolver.resolve("AppX", "Order", "123", name="Order 123")

    assert group.id is not None
    assert group.context_app == "AppX"
    assert group.name == "Order 123"
    assert await _group_count(db) == 1


async def test_resolve_returns_existing_group_and_keeps_its_name(db):
    resolver = GroupResolver(ChatRepository(db))

    first = await resolver.resolve("AppX", "Order", "123", name="original")
    second = await resolver.resolve("AppX", "Order", "123", name="renamed")

    assert second.id == first.id
    assert second.name == "original"
    assert await _group_count(db) == 1


async def test_distinct_contexts_get_distinct_groups(db):
    resolver = GroupResolver(ChatRepository(db))

    order = await resolver.resolve("AppX", "Order", "123")
    invoice = await resolver.resolve("AppX", "Invoice", "123")

    assert order.id != invoice.id


async def test_resolve_rejects_empty_context(db):
    resolver = GroupResolver(ChatRepository(db))

    with pytest.raises(ValidationError):
        await resolver.resolve("AppX", "", "123")
    assert await _group_count(db) == 0


async def test_concurrent_resolves_yield_one_group(file_session_factory):
    async def resolve_once():
        async with file_session_factory() as session:
            group = await GroupResolver(ChatRepository(session)).resolve("AppX", "Order", "123")
            return group.id

    ids = await asyncio.gather(*(resolve_once() for _ in range(5)))

    assert len(set(ids)) == 1
    async with file_session_factory() as session:
        assert await _group_count(session) == 1


async def test_conflict_falls_back_to_lookup():
    existing = ChatGroup(context_app="AppX", context_entity_type="Order", context_entity_id="123")
    repository = MagicMock()
    repository.find_or_create_group = AsyncMock(side_effect=ConflictError())
    repository.find_group = AsyncMock(return_value=existing)

    group = await GroupResolver(repository).resolve("AppX", "Order", "123")

    assert group is existing
    repository.find_group.assert_awaited_once_with(ChatContext("AppX", "Order", "123"))


async def test_racing_callers_all_receive_the_winner():
    winner = ChatGroup(context_app="AppX", context_entity_type="Order", context_entity_id="123")
    calls = []

    async def find_or_create(context, name):
        calls.append(context)
        if len(calls) == 1:
            return winner
        raise ConflictError()

    repository = MagicMock()
    repository.find_or_create_group = AsyncMock(side_effect=find_or_create)
    repository.find_group = AsyncMock(return_value=winner)
    resolver = GroupResolver(repository)

    groups = await asyncio.gather(*(resolver.resolve("AppX", "Order", "123") for _ in range(4)))

    assert all(group is winner for group in groups)
    assert repository.find_group.await_count == 3


async def test_conflict_without_winner_is_store_failure():
    repository = MagicMock()
    repository.find_or_create_group = AsyncMock(side_effect=ConflictError())
    repository.find_group = AsyncMock(return_value=None)

    with pytest.raises(StoreUnavailable):
        await GroupResolver(repository).resolve("AppX", "Order", "123")


def _mock_session(execute_error):
    db = AsyncMock()
    db.execute = AsyncMock(side_effect=execute_error)
    db.get_bind = MagicMock()
    db.get_bind.return_value.dialect.name = "postgresql"
    return db


async def test_repository_reports_unique_violation_as_conflict():
    db = _mock_session(IntegrityError("INSERT", {}, Exception("duplicate key")))

    with pytest.raises(ConflictError):
        await ChatRepository(db).find_or_create_group(ChatContext("AppX", "Order", "123"))
    db.rollback.assert_awaited()


async def test_repository_reports_connection_loss_as_store_unavailable():
    db = _mock_session(OperationalError("SELECT", {}, Exception("connection refused")))

    with pytest.raises(StoreUnavailable):
        await ChatRepository(db).find_or_create_group(ChatContext("AppX", "Order", "123"))


async def test_resolver_propagates_store_unavailable():
    db = _mock_session(OperationalError("SELECT", {}, Exception("connection refused")))

    with pytest.raises(StoreUnavailable):
        await GroupResolver(ChatRepository(db)).resolve("AppX", "Order", "123")


async def test_repository_reports_pool_timeout_as_store_unavailable():
    db = _mock_session(PoolTimeoutError("QueuePool limit of size 20 overflow 30 reached"))

    with pytest.raises(StoreUnavailable):
        await ChatRepository(db).find_group(ChatContext("AppX", "Order", "123"))
    db.rollback.assert_awaited()


async def test_resolver_reports_pool_timeout_as_store_unavailable():
    db = _mock_session(PoolTimeoutError("QueuePool limit of size 20 overflow 30 reached"))

    with pytest.raises(StoreUnavailable):
        await GroupResolver(ChatRepository(db)).resolve("AppX", "Order", "123")
