"""Query recorder

Writes one analytics record per completed search/suggestion request. A
failure to record never reaches the request path: it is logged and ``None``
is returned.
"""
import asyncio
import logging
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from search_proxy.core.config import settings
from search_proxy.core.exceptions import QueryValidationError
from search_proxy.models.query_record import HandlerCategory, QueryRecord
from search_proxy.schemas.analytics import QueryData
from search_proxy.services.record_store import QueryRecordStore

logger = logging.getLogger(__name__)


def parse_query_data(raw: Union[QueryData, Mapping[str, Any]]) -> QueryData:
    if isinstance(raw, QueryData):
        return raw
    try:
        return QueryData.model_validate(dict(raw))
    except (TypeError, ValidationError) as e:
        raise QueryValidationError(f"Invalid query data: {e}") from e


class QueryRecorder:
    """검색 쿼리 기록 서비스"""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        timeout: Optional[float] = None,
    ):
        self.session_maker = session_maker
        self.timeout = timeout or settings.STORE_TIMEOUT_SECONDS

    async def record_query(
        self, data: Union[QueryData, Mapping[str, Any]]
    ) -> Optional[QueryRecord]:
        """Persist a query record

        Returns:
            The saved record, or ``None`` when the store is unavailable
        """
        query_data = parse_query_data(data)
        if not query_data.query:
            logger.warning("Missing required field: query, using placeholder")
        if not query_data.handler:
            logger.warning("Missing required field: handler, recording as 'other'")

        try:
            record = await asyncio.wait_for(self._save(query_data), self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Query record write timed out ({self.timeout}s)")
            return None
        except Exception as e:
            logger.error(f"Error saving query record: {e}")
            return None

        logger.info(
            f"📝 Query recorded: id={record.id}, handler={record.handler_category}, "
            f"query={record.query_text[:40]!r}"
        )
        return record

    async def _save(self, query_data: QueryData) -> QueryRecord:
        has_results = query_data.has_results
        if has_results is None:
            has_results = query_data.result_count > 0

        async with self.session_maker() as session:
            store = QueryRecordStore(session)
            record = store.create_record(
                query_data.handler or HandlerCategory.OTHER,
                query_data.query,
                session_id=query_data.session_id,
                client_ip=query_data.client_ip,
                user_agent=query_data.user_agent,
                referer=query_data.referer,
                search_collection=query_data.collection,
                location=query_data.location(),
                filters={
                    "tabs": query_data.tabs,
                    "programTab": query_data.is_program_tab,
                    "staffTab": query_data.is_staff_tab,
                    "otherFilters": query_data.filters or {},
                },
                enrichment_data=query_data.enrichment_data,
                response_time=query_data.response_time,
                result_count=query_data.result_count,
                has_results=has_results,
                cache_hit=query_data.cache_hit,
                error_message=query_data.error_message,
                error_status=query_data.error_status,
            )
            await session.commit()
            return record
