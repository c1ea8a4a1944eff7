"""API dependencies for dependency injection"""
from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from search_proxy.db.session import get_database_client
from search_proxy.services.batch_clicks import BatchClickProcessor
from search_proxy.services.cache_service import CacheService, get_cache_service
from search_proxy.services.click_attribution import ClickAttributionEngine
from search_proxy.services.query_recorder import QueryRecorder


async def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Session factory of the record store client

    Raises ``RecordStoreUnavailableError`` when the store cannot be reached
    within the configured number of attempts.
    """
    client = get_database_client()
    await client.ensure_connected()
    return client.session_maker


async def get_db(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency"""
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


def get_attribution_engine(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> ClickAttributionEngine:
    return ClickAttributionEngine(session_maker)


def get_batch_processor(
    engine: ClickAttributionEngine = Depends(get_attribution_engine),
) -> BatchClickProcessor:
    return BatchClickProcessor(engine)


def get_query_recorder(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> QueryRecorder:
    return QueryRecorder(session_maker)


def get_cache() -> CacheService:
    return get_cache_service()
