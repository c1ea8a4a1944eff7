"""Record expiration policy

Two tiers: suggestion traffic is ephemeral and expires sooner than search,
supplement and click data.
"""
from datetime import datetime, timedelta
from typing import FrozenSet, Optional, Union

from search_proxy.core.config import settings
from search_proxy.models.query_record import HandlerCategory, utcnow

SUGGESTION_CATEGORIES: FrozenSet[HandlerCategory] = frozenset(
    {
        HandlerCategory.SUGGEST,
        HandlerCategory.SUGGEST_PEOPLE,
        HandlerCategory.SUGGEST_PROGRAMS,
    }
)


def is_suggestion_category(category: Union[str, HandlerCategory]) -> bool:
    return HandlerCategory.parse(category) in SUGGESTION_CATEGORIES


def record_ttl(category: Union[str, HandlerCategory]) -> timedelta:
    """TTL for a handler category"""
    if is_suggestion_category(category):
        return timedelta(days=settings.SUGGESTION_RECORD_TTL_DAYS)
    return timedelta(days=settings.SEARCH_RECORD_TTL_DAYS)


def compute_expires_at(
    category: Union[str, HandlerCategory],
    now: Optional[datetime] = None,
) -> datetime:
    return (now or utcnow()) + record_ttl(category)
