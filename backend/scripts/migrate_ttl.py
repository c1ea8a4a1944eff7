#!/usr/bin/env python
"""
레코드 만료 시간 백필 스크립트
expires_at 이 없는 기존 레코드에 TTL 을 할당합니다.
suggestion 클래스를 먼저 처리한 뒤 other 클래스로 넘어갑니다.
"""
import asyncio
import logging
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from search_proxy.core.config import settings
from search_proxy.db.session import close_database, get_database_client
from search_proxy.services.ttl_backfill import BACKFILL_TYPES, backfill_expiration_batch

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def migrate_type(session_maker, batch_type: str) -> int:
    """한 클래스가 완료될 때까지 배치 반복"""
    total = 0
    skip = 0
    while True:
        async with session_maker() as session:
            progress = await backfill_expiration_batch(
                session,
                batch_type=batch_type,
                skip=skip,
                batch_size=settings.TTL_BACKFILL_BATCH_SIZE,
            )

        total += progress.processed
        logger.info(
            f"[{batch_type}] processed={progress.processed} remaining={progress.remaining}"
        )
        if progress.complete:
            return total
        if progress.processed == 0:
            logger.warning(f"[{batch_type}] stalled with {progress.remaining} remaining")
            return total
        skip = progress.next_skip


async def main():
    """TTL 백필 실행"""
    logger.info("=" * 50)
    logger.info("TTL 백필 시작")
    logger.info("=" * 50)

    client = get_database_client()
    try:
        await client.ensure_connected()

        for batch_type in BACKFILL_TYPES:
            count = await migrate_type(client.session_maker, batch_type)
            logger.info(f"[{batch_type}] 완료: {count}개 레코드 업데이트")

        logger.info("=" * 50)
        logger.info("TTL 백필 완료")
        logger.info("=" * 50)

    except Exception as e:
        logger.error(f"백필 실패: {e}")
        raise

    finally:
        await close_database()


if __name__ == "__main__":
    asyncio.run(main())
