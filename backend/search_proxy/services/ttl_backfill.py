"""Expiration backfill for records created before TTL assignment existed

Processes one small batch per call so a caller can poll until ``complete``.
Records are split into two classes, ``suggestion`` and ``other``, matching
the two TTL tiers.

Offsets count records that still lack ``expires_at``. Processed records
leave that set, so resuming after a batch uses the same offset; a non-zero
offset only skips records the caller wants left untouched.
"""
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from search_proxy.core.config import settings
from search_proxy.models.query_record import QueryRecord, utcnow
from search_proxy.services.ttl_policy import SUGGESTION_CATEGORIES

logger = logging.getLogger(__name__)

BACKFILL_TYPES = ("suggestion", "other")

_SUGGESTION_VALUES = sorted(c.value for c in SUGGESTION_CATEGORIES)


@dataclass
class BackfillProgress:
    type: str
    processed: int
    batch_size: int
    skip: int
    remaining: int
    next_skip: Optional[int]
    complete: bool
    next_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _class_conditions(batch_type: str):
    if batch_type not in BACKFILL_TYPES:
        raise ValueError(f"Unknown backfill type: {batch_type!r}")
    category = QueryRecord.handler_category
    in_class = (
        category.in_(_SUGGESTION_VALUES)
        if batch_type == "suggestion"
        else category.not_in(_SUGGESTION_VALUES)
    )
    return [in_class, QueryRecord.expires_at.is_(None)]


def _class_ttl(batch_type: str) -> timedelta:
    if batch_type == "suggestion":
        return timedelta(days=settings.SUGGESTION_RECORD_TTL_DAYS)
    return timedelta(days=settings.SEARCH_RECORD_TTL_DAYS)


async def count_missing_expiration(session: AsyncSession, batch_type: str) -> int:
    result = await session.execute(
        select(func.count(QueryRecord.id)).where(*_class_conditions(batch_type))
    )
    return result.scalar() or 0


async def backfill_expiration_batch(
    session: AsyncSession,
    batch_type: str = "suggestion",
    skip: int = 0,
    batch_size: Optional[int] = None,
    now: Optional[datetime] = None,
) -> BackfillProgress:
    """Assign ``expires_at`` to one batch of records lacking it"""
    if skip < 0:
        raise ValueError("skip must be >= 0")
    batch_size = batch_size or settings.TTL_BACKFILL_BATCH_SIZE
    conditions = _class_conditions(batch_type)
    now = now or utcnow()

    id_rows = await session.execute(
        select(QueryRecord.id)
        .where(*conditions)
        .order_by(QueryRecord.id)
        .offset(skip)
        .limit(batch_size)
    )
    ids = [row[0] for row in id_rows]

    processed = 0
    if ids:
        result = await session.execute(
            update(QueryRecord)
            .where(QueryRecord.id.in_(ids), QueryRecord.expires_at.is_(None))
            .values(expires_at=now + _class_ttl(batch_type))
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        processed = result.rowcount or 0

    remaining = await count_missing_expiration(session, batch_type)
    # Only records behind the offset are left: this class is done.
    complete = remaining <= skip
    next_type = "other" if complete and batch_type == "suggestion" else None

    logger.info(
        f"TTL backfill [{batch_type}] processed={processed} skip={skip} remaining={remaining}"
    )
    return BackfillProgress(
        type=batch_type,
        processed=processed,
        batch_size=len(ids),
        skip=skip,
        remaining=remaining,
        next_skip=None if complete else skip,
        complete=complete,
        next_type=next_type,
    )
