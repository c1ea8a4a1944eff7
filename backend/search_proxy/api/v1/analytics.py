"""Analytics API endpoints"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import unquote

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from search_proxy.api.deps import (
    get_attribution_engine,
    get_batch_processor,
    get_db,
    get_query_recorder,
)
from search_proxy.core.exceptions import ClickValidationError
from search_proxy.core.request_utils import (
    extract_client_ip,
    extract_session_id,
    get_request_id,
)
from search_proxy.models.query_record import HandlerCategory
from search_proxy.schemas.analytics import (
    BatchClickRequest,
    BatchClickResponse,
    ClickResponse,
    QueryData,
    QueryStatistics,
    SupplementRequest,
    SupplementResponse,
    parse_click_event,
)
from search_proxy.services.batch_clicks import BatchClickProcessor
from search_proxy.services.click_attribution import ClickAttributionEngine
from search_proxy.services.query_recorder import QueryRecorder
from search_proxy.services.record_store import QueryRecordStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@router.post("/click", response_model=ClickResponse)
async def record_click(
    request: Request,
    payload: Optional[Dict[str, Any]] = Body(None),
    engine: ClickAttributionEngine = Depends(get_attribution_engine),
):
    """검색 결과 클릭 기록

    Attributes the click to the most recent matching query record, or
    stores it as a click-only record.

    - **originalQuery** / **query**: search text the result belonged to
    - **clickedUrl** / **url**: clicked result URL
    - **clickedTitle**, **clickPosition**, **clickType**: optional details
    """
    payload = payload or {}
    request_id = get_request_id(request)
    session_id = extract_session_id(request, payload)
    client_ip = extract_client_ip(request)

    try:
        click = parse_click_event(payload, session_id=session_id, client_ip=client_ip)
    except ClickValidationError as e:
        logger.warning(f"[{request_id}] Invalid click: {e}")
        raise HTTPException(
            status_code=400,
            detail={"error": str(e), "receivedFields": e.received_fields},
        )

    result = await engine.attribute_click(click)
    return ClickResponse(
        request_id=request_id,
        record_id=result.record_id,
        matched=result.matched,
    )


@router.post("/clicks-batch", response_model=BatchClickResponse)
async def record_clicks_batch(
    request: Request,
    payload: BatchClickRequest,
    processor: BatchClickProcessor = Depends(get_batch_processor),
):
    """클릭 배치 기록

    Each click is attributed independently; invalid or failed clicks are
    counted as skipped.
    """
    if not payload.clicks:
        raise HTTPException(status_code=400, detail="No clicks provided")

    logger.info(f"Processing batch of {len(payload.clicks)} clicks")
    result = await processor.attribute_clicks(
        payload.clicks,
        client_ip=extract_client_ip(request),
    )
    return BatchClickResponse(
        processed=result.processed_count,
        total=result.total_count,
        skipped=result.skipped_count,
    )


@router.post("/supplement", response_model=SupplementResponse)
async def record_supplement(
    request: Request,
    payload: SupplementRequest,
    recorder: QueryRecorder = Depends(get_query_recorder),
):
    """Supplementary analytics for a query rendered by the front-end"""
    if not payload.query:
        raise HTTPException(status_code=400, detail="No query provided")

    query_data = QueryData(
        query=payload.query,
        handler=HandlerCategory.SUPPLEMENT.value,
        session_id=payload.session_id,
        client_ip=extract_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
        city=unquote(request.headers.get("x-vercel-ip-city", "")) or None,
        region=request.headers.get("x-vercel-ip-country-region"),
        country=request.headers.get("x-vercel-ip-country"),
        result_count=payload.result_count or 0,
        has_results=None if payload.result_count is None else payload.result_count > 0,
        enrichment_data=payload.enrichment_data,
    )

    record = await recorder.record_query(query_data)
    if record is None:
        raise HTTPException(status_code=500, detail="Failed to record analytics data")

    return SupplementResponse(record_id=record.id)


@router.get("/stats", response_model=QueryStatistics)
async def get_statistics(
    start_date: Optional[datetime] = Query(None, description="기간 시작"),
    end_date: Optional[datetime] = Query(None, description="기간 종료"),
    handler: Optional[str] = Query(None, description="핸들러 필터"),
    session: AsyncSession = Depends(get_db),
):
    """쿼리 통계 조회"""
    store = QueryRecordStore(session)
    return await store.get_query_statistics(
        start_date=_as_utc(start_date),
        end_date=_as_utc(end_date),
        handler=handler,
    )
