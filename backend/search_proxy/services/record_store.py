"""Query record persistence

Every record goes through ``create_record`` so that ``expires_at`` is assigned
exactly once, at creation. Clicks are appended with an INSERT into
``clicked_results`` plus a single-column UPDATE of ``last_click_timestamp``;
the parent row is never read back and rewritten, so concurrent appends to the
same record cannot overwrite each other.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import Select, case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from search_proxy.models.query_record import (
    EMPTY_QUERY_PLACEHOLDER,
    ClickedResult,
    HandlerCategory,
    QueryRecord,
    utcnow,
)
from search_proxy.schemas.analytics import (
    ClickEvent,
    QueryCount,
    QueryStatistics,
    StatsSummary,
)
from search_proxy.services.ttl_policy import compute_expires_at

logger = logging.getLogger(__name__)

TOP_QUERIES_LIMIT = 20


class QueryRecordStore:
    """Query record operations bound to one session"""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ==================== 생성 ====================

    def create_record(
        self,
        category: Union[str, HandlerCategory],
        query_text: Optional[str],
        now: Optional[datetime] = None,
        **fields: Any,
    ) -> QueryRecord:
        """Add a new record to the session with its expiration assigned

        The caller commits.
        """
        now = now or utcnow()
        handler = HandlerCategory.parse(category)
        record = QueryRecord(
            query_text=query_text or EMPTY_QUERY_PLACEHOLDER,
            handler_category=handler.value,
            timestamp=now,
            expires_at=compute_expires_at(handler, now),
            **fields,
        )
        self.session.add(record)
        return record

    # ==================== 클릭 ====================

    @staticmethod
    def latest_match_query(conditions: List[Any]) -> Select:
        return (
            select(QueryRecord.id)
            .where(*conditions)
            .order_by(QueryRecord.timestamp.desc(), QueryRecord.id.desc())
            .limit(1)
        )

    async def find_latest_match(self, conditions: List[Any]) -> Optional[str]:
        """Id of the most recent record satisfying every condition"""
        result = await self.session.execute(self.latest_match_query(conditions))
        return result.scalar_one_or_none()

    async def append_click(self, record_id: str, click: ClickEvent, now: datetime) -> None:
        """Append one click to an existing record (caller commits)"""
        self.session.add(
            ClickedResult(
                query_record_id=record_id,
                url=click.clicked_url,
                title=click.clicked_title,
                position=click.click_position,
                click_type=click.click_type,
                timestamp=now,
            )
        )
        await self.session.execute(
            update(QueryRecord)
            .where(QueryRecord.id == record_id)
            .values(last_click_timestamp=now)
        )

    def create_click_only_record(self, click: ClickEvent, now: datetime) -> QueryRecord:
        """Standalone record for a click with no matching query"""
        record = self.create_record(
            HandlerCategory.CLICK_ONLY,
            click.original_query,
            now=now,
            session_id=click.session_id,
            client_ip=click.client_ip,
            last_click_timestamp=now,
        )
        record.clicked_results.append(
            ClickedResult(
                url=click.clicked_url,
                title=click.clicked_title,
                position=click.click_position,
                click_type=click.click_type,
                timestamp=now,
            )
        )
        return record

    async def get_record(self, record_id: str) -> Optional[QueryRecord]:
        result = await self.session.execute(
            select(QueryRecord).where(QueryRecord.id == record_id)
        )
        return result.scalar_one_or_none()

    # ==================== 만료 ====================

    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete records whose ``expires_at`` has passed, with their clicks"""
        now = now or utcnow()
        expired_ids = select(QueryRecord.id).where(QueryRecord.expires_at <= now)

        await self.session.execute(
            delete(ClickedResult).where(ClickedResult.query_record_id.in_(expired_ids))
        )
        result = await self.session.execute(
            delete(QueryRecord).where(QueryRecord.expires_at <= now)
        )
        await self.session.commit()
        return result.rowcount or 0

    # ==================== 통계 ====================

    async def get_query_statistics(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        handler: Optional[str] = None,
    ) -> QueryStatistics:
        """Summary, most frequent queries and most frequent zero-result queries"""
        conditions = []
        if start_date:
            conditions.append(QueryRecord.timestamp >= start_date)
        if end_date:
            conditions.append(QueryRecord.timestamp <= end_date)
        if handler:
            conditions.append(QueryRecord.handler_category == handler)

        summary_row = (
            await self.session.execute(
                select(
                    func.count(QueryRecord.id),
                    func.avg(QueryRecord.response_time),
                    func.sum(case((QueryRecord.has_results.is_(True), 1), else_=0)),
                    func.sum(case((QueryRecord.error_message.is_not(None), 1), else_=0)),
                    func.avg(QueryRecord.result_count),
                ).where(*conditions)
            )
        ).one()

        summary = StatsSummary(
            total_queries=summary_row[0] or 0,
            average_response_time=float(summary_row[1] or 0),
            queries_with_results=int(summary_row[2] or 0),
            queries_with_errors=int(summary_row[3] or 0),
            average_result_count=float(summary_row[4] or 0),
        )

        count_col = func.count(QueryRecord.id).label("count")
        top_rows = await self.session.execute(
            select(
                QueryRecord.query_text,
                count_col,
                func.avg(QueryRecord.result_count),
                func.avg(QueryRecord.response_time),
            )
            .where(*conditions)
            .group_by(QueryRecord.query_text)
            .order_by(count_col.desc())
            .limit(TOP_QUERIES_LIMIT)
        )
        top_queries = [
            QueryCount(
                query=row[0],
                count=row[1],
                avg_results=float(row[2] or 0),
                avg_response_time=float(row[3] or 0),
            )
            for row in top_rows
        ]

        zero_rows = await self.session.execute(
            select(QueryRecord.query_text, count_col)
            .where(*conditions, QueryRecord.has_results.is_(False))
            .group_by(QueryRecord.query_text)
            .order_by(count_col.desc())
            .limit(TOP_QUERIES_LIMIT)
        )
        zero_result_queries = [QueryCount(query=row[0], count=row[1]) for row in zero_rows]

        return QueryStatistics(
            summary=summary,
            top_queries=top_queries,
            zero_result_queries=zero_result_queries,
        )

    async def count_records(self) -> Dict[str, int]:
        total = await self.session.execute(select(func.count(QueryRecord.id)))
        clicks = await self.session.execute(select(func.count(ClickedResult.seq)))
        return {"records": total.scalar() or 0, "clicks": clicks.scalar() or 0}
