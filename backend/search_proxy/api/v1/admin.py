"""관리자 API 엔드포인트"""
import secrets
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from search_proxy.api.deps import get_cache, get_db
from search_proxy.core.config import settings
from search_proxy.services.cache_service import CacheService
from search_proxy.services.record_store import QueryRecordStore
from search_proxy.services.ttl_backfill import BACKFILL_TYPES, backfill_expiration_batch

router = APIRouter()


class MigrationResponse(BaseModel):
    """TTL 마이그레이션 배치 응답"""

    success: bool = True
    type: str
    processed: int
    batch_size: int
    skip: int
    remaining: int
    next_skip: Optional[int] = None
    complete: bool
    next_type: Optional[str] = None


class CacheInvalidateRequest(BaseModel):
    """캐시 무효화 요청"""

    endpoint: str = Field(..., min_length=1, description="엔드포인트 이름")
    params: Dict[str, Any] = Field(default_factory=dict, description="요청 파라미터")


class CacheInvalidateResponse(BaseModel):
    success: bool


class StatsResponse(BaseModel):
    """시스템 통계 응답"""

    records_count: int
    clicks_count: int
    status: str = "healthy"


def _check_key(key: Optional[str]) -> None:
    if not key or not secrets.compare_digest(key, settings.MIGRATION_AUTH_KEY):
        raise HTTPException(status_code=401, detail="Unauthorized access")


@router.post("/migrate-ttl", response_model=MigrationResponse)
async def migrate_ttl(
    key: Optional[str] = Query(None, description="마이그레이션 인증 키"),
    type: str = Query("suggestion", description="suggestion | other"),
    skip: int = Query(0, ge=0, description="건너뛸 레코드 수"),
    batch_size: Optional[int] = Query(None, ge=1, le=100000),
    session: AsyncSession = Depends(get_db),
):
    """만료 시간이 없는 레코드에 expires_at 일괄 할당

    ⚠️ 관리자 전용 API

    Processes one batch per call; call again with ``next_skip`` (and
    ``next_type`` once a class is complete) until ``complete`` is true for
    the ``other`` class.
    """
    _check_key(key)
    if type not in BACKFILL_TYPES:
        raise HTTPException(status_code=400, detail=f"type must be one of {BACKFILL_TYPES}")

    progress = await backfill_expiration_batch(
        session,
        batch_type=type,
        skip=skip,
        batch_size=batch_size,
    )
    return MigrationResponse(**progress.to_dict())


@router.post("/cache/invalidate", response_model=CacheInvalidateResponse)
async def invalidate_cache(
    request: CacheInvalidateRequest,
    cache: CacheService = Depends(get_cache),
):
    """Remove one cached response"""
    success = await cache.invalidate_cache(request.endpoint, request.params)
    return CacheInvalidateResponse(success=success)


@router.get("/cache/status")
async def cache_status(cache: CacheService = Depends(get_cache)):
    """캐시 상태 및 TTL 정책"""
    return await cache.get_status()


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    session: AsyncSession = Depends(get_db),
):
    """시스템 통계 조회"""
    try:
        counts = await QueryRecordStore(session).count_records()
        return StatsResponse(
            records_count=counts["records"],
            clicks_count=counts["clicks"],
            status="healthy",
        )

    except Exception as e:
        return StatsResponse(
            records_count=0,
            clicks_count=0,
            status=f"error: {str(e)}",
        )


@router.get("/health")
async def health_check():
    """헬스 체크"""
    return {
        "status": "healthy",
        "service": "search-analytics-proxy",
        "version": "1.0.0",
    }
