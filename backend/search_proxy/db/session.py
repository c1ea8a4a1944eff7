"""Database session management

The record store connection is owned by ``DatabaseClient``: the engine is
created on first use, reused for every session, and disposed by ``close()``.
"""
import asyncio
import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from search_proxy.core.config import settings
from search_proxy.core.exceptions import RecordStoreUnavailableError
from search_proxy.db.base import Base

logger = logging.getLogger(__name__)


class DatabaseClient:
    """Lazily connected handle to the analytics record store"""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        engine: Optional[AsyncEngine] = None,
    ):
        self.url = url or settings.DATABASE_URL
        self.timeout = timeout or settings.STORE_TIMEOUT_SECONDS
        self.max_retries = max_retries or settings.STORE_MAX_RETRIES
        self._engine: Optional[AsyncEngine] = engine
        self._session_maker: Optional[async_sessionmaker[AsyncSession]] = None
        self._verified = False

    def _create_engine(self) -> AsyncEngine:
        kwargs = {"echo": False, "pool_pre_ping": True}
        if not self.url.startswith("sqlite"):
            kwargs.update(pool_size=10, max_overflow=20)
        return create_async_engine(self.url, **kwargs)

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    @property
    def session_maker(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            self._session_maker = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autocommit=False,
                autoflush=False,
            )
        return self._session_maker

    async def connect(self) -> bool:
        """Verify connectivity, retrying up to ``max_retries`` times"""
        for attempt in range(1, self.max_retries + 1):
            try:
                async with self.engine.connect() as conn:
                    await asyncio.wait_for(conn.execute(text("SELECT 1")), self.timeout)
                self._verified = True
                logger.info("✅ Record store connected")
                return True
            except Exception as e:
                logger.warning(
                    f"⚠️ Record store connection failed ({attempt}/{self.max_retries}): {e}"
                )
        self._verified = False
        return False

    async def ensure_connected(self) -> None:
        """Raise ``RecordStoreUnavailableError`` when no connection can be made"""
        if self._verified:
            return
        if not await self.connect():
            raise RecordStoreUnavailableError("Record store unavailable")

    def mark_unhealthy(self) -> None:
        """Force a connectivity check before the next use"""
        self._verified = False

    async def create_tables(self) -> None:
        from search_proxy.models import query_record  # noqa: F401 - register tables

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("👋 Record store connection closed")
        self._engine = None
        self._session_maker = None
        self._verified = False


# 싱글톤 인스턴스
_database_client: Optional[DatabaseClient] = None


def get_database_client() -> DatabaseClient:
    """Record store client singleton"""
    global _database_client
    if _database_client is None:
        _database_client = DatabaseClient()
    return _database_client


async def initialize_database() -> bool:
    """Connect and create tables if missing"""
    client = get_database_client()
    if not await client.connect():
        return False
    await client.create_tables()
    return True


async def close_database() -> None:
    global _database_client
    if _database_client:
        await _database_client.close()
        _database_client = None

