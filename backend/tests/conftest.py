"""Pytest configuration and fixtures"""
from typing import AsyncGenerator, Dict, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from search_proxy.api.deps import get_cache, get_session_maker
from search_proxy.db.base import Base
from search_proxy.external.base_cache_client import BaseCacheClient
from search_proxy.main import app
# Import models so they are registered with Base.metadata
from search_proxy.models.query_record import ClickedResult, QueryRecord  # noqa: F401
from search_proxy.services.cache_service import CacheService


class FakeCacheClient(BaseCacheClient):
    """In-memory cache backend for tests"""

    def __init__(self, available: bool = True):
        self.available = available
        self.store: Dict[str, Tuple[str, Optional[int]]] = {}

    @property
    def is_enabled(self) -> bool:
        return self.available

    async def connect(self) -> bool:
        return self.available

    async def close(self) -> None:
        self.store.clear()

    async def ping(self) -> bool:
        return self.available

    async def get(self, key: str) -> Optional[str]:
        if not self.available:
            return None
        entry = self.store.get(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        if not self.available:
            return False
        self.store[key] = (value, ttl)
        return True

    async def delete(self, key: str) -> bool:
        if not self.available:
            return False
        self.store.pop(key, None)
        return True

    async def ttl(self, key: str) -> int:
        entry = self.store.get(key)
        if entry is None:
            return -2
        return entry[1] if entry[1] is not None else -1


@pytest_asyncio.fixture
async def session_maker(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """File-backed SQLite store so concurrent sessions use separate connections"""
    db_path = tmp_path / "analytics_test.sqlite"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    async with session_maker() as session:
        yield session


@pytest.fixture
def fake_cache() -> FakeCacheClient:
    return FakeCacheClient()


@pytest_asyncio.fixture
async def client(session_maker, fake_cache) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client"""

    async def override_get_session_maker():
        return session_maker

    app.dependency_overrides[get_session_maker] = override_get_session_maker
    app.dependency_overrides[get_cache] = lambda: CacheService(client=fake_cache)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
