import json
import os

# Set env vars BEFORE any imports from the project happen
TEST_DB_PATH = "test_chat_relay.db"
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{TEST_DB_PATH}")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("AUTO_CREATE_TABLES", "true")
os.environ.setdefault("AUTH_MODE", "allow_all")
os.environ.setdefault("ENVIRONMENT", "test")

if os.path.exists(TEST_DB_PATH):
    os.remove(TEST_DB_PATH)

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from chat_relay.models import Base


class FakeWebSocket:
    """Records frames the server sends."""

    def __init__(self):
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_text(self, data: str):
        self.sent.append(json.loads(data))

    @property
    def event_types(self):
        return [frame["type"] for frame in self.sent]


class FakeCache:
    def __init__(self):
        self.store = {}
        self.gets = 0

    async def get(self, key):
        self.gets += 1
        return self.store.get(key)

    async def set(self, key, value, expire=None):
        self.store[key] = value
        return True


@pytest.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession, autoflush=False)
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def file_session_factory(tmp_path):
    """Each session gets its own connection to a file database, like a server pool"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'chat_relay_race.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 15},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession, autoflush=False)
    await engine.dispose()
