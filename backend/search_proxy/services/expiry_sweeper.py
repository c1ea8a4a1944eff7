"""Background deletion of expired query records"""
import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from search_proxy.core.config import settings
from search_proxy.services.record_store import QueryRecordStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Periodically deletes records whose ``expires_at`` has passed"""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        interval_seconds: Optional[int] = None,
    ):
        self.session_maker = session_maker
        self.interval_seconds = interval_seconds or settings.EXPIRY_SWEEP_INTERVAL_SECONDS
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self) -> int:
        """Delete expired records now; returns the number removed (0 on failure)"""
        try:
            async with self.session_maker() as session:
                removed = await QueryRecordStore(session).purge_expired()
        except Exception as e:
            logger.error(f"Expired record sweep failed: {e}")
            return 0

        if removed:
            logger.info(f"🧹 Removed {removed} expired query records")
        return removed

    async def _run(self) -> None:
        while True:
            await self.sweep_once()
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="expiry-sweeper")
        logger.info(f"Expiry sweeper started (interval={self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiry sweeper stopped")
