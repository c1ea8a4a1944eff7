"""Click attribution

Links a click to the query record that most plausibly produced it. The
match rules are built by ``build_click_filter`` as an ordered list of
predicates, independent of any store, and are then applied either as SQL
conditions or in memory.

Matching rules, each narrowing the previous:

1. query text equal to the click's original query, ignoring case
   (exact match, never substring), created within the recency window
2. same session id, when the click carries one
3. same client IP, when the click carries one

The most recent surviving record receives the click. When nothing matches,
a standalone ``click-only`` record is created instead.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, List, Mapping, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from search_proxy.core.config import settings
from search_proxy.core.exceptions import RecordStoreUnavailableError
from search_proxy.models.query_record import QueryRecord, utcnow
from search_proxy.schemas.analytics import ClickEvent, parse_click_event
from search_proxy.services.record_store import QueryRecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchPredicate:
    """One equality/range rule over a query record"""

    name: str
    sql: Any
    check: Callable[[Any], bool]


@dataclass
class ClickMatchFilter:
    """Ordered predicate set for one click"""

    predicates: List[MatchPredicate] = field(default_factory=list)

    @property
    def names(self) -> List[str]:
        return [p.name for p in self.predicates]

    def to_conditions(self) -> List[Any]:
        return [p.sql for p in self.predicates]

    def matches(self, record: Any) -> bool:
        """Evaluate the filter against a record-like object in memory"""
        return all(p.check(record) for p in self.predicates)


def build_click_filter(
    click: ClickEvent,
    now: Optional[datetime] = None,
    window: Optional[timedelta] = None,
) -> ClickMatchFilter:
    """Predicate set a query record must satisfy to receive ``click``"""
    now = now or utcnow()
    window = window if window is not None else timedelta(hours=settings.CLICK_MATCH_WINDOW_HOURS)
    since = now - window
    query_lower = click.original_query.lower()

    predicates = [
        MatchPredicate(
            "query_text",
            func.lower(QueryRecord.query_text) == query_lower,
            lambda r: (r.query_text or "").lower() == query_lower,
        ),
        MatchPredicate(
            "timestamp",
            QueryRecord.timestamp >= since,
            lambda r: r.timestamp is not None and r.timestamp >= since,
        ),
    ]

    if click.session_id:
        session_id = click.session_id
        predicates.append(
            MatchPredicate(
                "session_id",
                QueryRecord.session_id == session_id,
                lambda r: r.session_id == session_id,
            )
        )

    if click.client_ip:
        client_ip = click.client_ip
        predicates.append(
            MatchPredicate(
                "client_ip",
                QueryRecord.client_ip == client_ip,
                lambda r: r.client_ip == client_ip,
            )
        )

    return ClickMatchFilter(predicates)


@dataclass
class AttributionResult:
    record_id: str
    matched: bool


class ClickAttributionEngine:
    """클릭 이벤트를 이전 검색 쿼리에 연결

    Each call runs in its own session and a single transaction: either the
    lookup and the write both take effect or neither does. Timeouts and
    cancellation roll the transaction back.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        match_window: Optional[timedelta] = None,
        timeout: Optional[float] = None,
    ):
        self.session_maker = session_maker
        self.match_window = match_window or timedelta(hours=settings.CLICK_MATCH_WINDOW_HOURS)
        self.timeout = timeout or settings.STORE_TIMEOUT_SECONDS

    async def attribute_click(
        self, click: Union[ClickEvent, Mapping[str, Any]]
    ) -> AttributionResult:
        """Attach a click to its query record, or create a click-only record

        Raises:
            ClickValidationError: click is missing originalQuery or clickedUrl
            RecordStoreUnavailableError: lookup or write failed; nothing persisted
        """
        if not isinstance(click, ClickEvent):
            click = parse_click_event(click)

        try:
            result = await asyncio.wait_for(self._attribute(click), self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Click attribution timed out ({self.timeout}s): {click.original_query!r}")
            raise RecordStoreUnavailableError("Record store timed out") from e
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Click attribution failed: {e}")
            raise RecordStoreUnavailableError(str(e)) from e

        logger.info(
            f"🖱️ Click {'attributed to' if result.matched else 'recorded as click-only'} "
            f"{result.record_id}: query={click.original_query!r}, url={click.clicked_url}"
        )
        return result

    async def _attribute(self, click: ClickEvent) -> AttributionResult:
        now = utcnow()
        match_filter = build_click_filter(click, now, self.match_window)

        async with self.session_maker() as session:
            async with session.begin():
                store = QueryRecordStore(session)
                record_id = await store.find_latest_match(match_filter.to_conditions())

                if record_id is not None:
                    await store.append_click(record_id, click, now)
                    return AttributionResult(record_id=record_id, matched=True)

                record = store.create_click_only_record(click, now)
                await session.flush()
                return AttributionResult(record_id=record.id, matched=False)
