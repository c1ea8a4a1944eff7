"""응답 캐시 서비스

Sits in front of the upstream search engine: handlers call
``get_cached_data`` before the upstream call and ``set_cached_data`` after a
miss. Every failure mode of the store (unconfigured, unreachable, timeout,
corrupt entry) degrades to a miss or ``False``.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from search_proxy.core.config import settings
from search_proxy.external.base_cache_client import BaseCacheClient
from search_proxy.services.cache_keys import generate_cache_key

logger = logging.getLogger(__name__)


# Endpoint name -> TTL category
ENDPOINT_CATEGORIES: Dict[str, str] = {
    "suggest": "suggestions",
    "suggestions": "suggestions",
    "suggestPrograms": "programs",
    "programs": "programs",
    "suggestPeople": "people",
    "people": "people",
}


def default_ttl_table() -> Dict[str, int]:
    return {
        "suggestions": settings.CACHE_TTL_SUGGESTIONS,
        "programs": settings.CACHE_TTL_PROGRAMS,
        "people": settings.CACHE_TTL_PEOPLE,
        "default": settings.CACHE_TTL_DEFAULT,
    }


@dataclass
class CacheOperationLog:
    """One structured cache log line"""

    operation: str
    endpoint: str
    cache_key: str
    request_id: Optional[str] = None
    data_size: Optional[str] = None
    ttl: Optional[str] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    def emit(self) -> None:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": f"cache-{self.endpoint}",
            "operation": self.operation,
            "cacheKey": self.cache_key,
            "requestId": self.request_id or "unknown",
        }
        for name, value in (
            ("dataSize", self.data_size),
            ("ttl", self.ttl),
            ("errorType", self.error_type),
            ("errorMessage", self.error_message),
        ):
            if value is not None:
                payload[name] = value

        level = logging.WARNING if self.operation == "error" else logging.INFO
        logger.log(level, "CACHE-LOG: %s", json.dumps(payload, ensure_ascii=False))


def _size_kb(data: str) -> str:
    return f"{round(len(data.encode('utf-8')) / 1024)}KB"


class CacheService:
    """Endpoint-aware response cache over a ``BaseCacheClient``"""

    def __init__(
        self,
        client: Optional[BaseCacheClient] = None,
        ttl_table: Optional[Dict[str, int]] = None,
    ):
        self.client = client or self._get_default_client()
        self.ttl_table = ttl_table or default_ttl_table()

    @staticmethod
    def _get_default_client() -> BaseCacheClient:
        from search_proxy.external.redis_client import get_redis_client

        return get_redis_client()

    def ttl_for(self, endpoint: str) -> int:
        """TTL in seconds for an endpoint, by category"""
        category = ENDPOINT_CATEGORIES.get(endpoint, "default")
        return self.ttl_table.get(category, self.ttl_table["default"])

    async def is_caching_enabled(self) -> bool:
        if not settings.ENABLE_CACHE or not self.client.is_enabled:
            return False
        return await self.client.ping()

    # ==================== 조회 ====================

    async def get_cached_data(
        self,
        endpoint: str,
        params: Optional[Mapping[str, Any]],
        request_id: Optional[str] = None,
    ) -> Optional[Any]:
        """Cached payload, or ``None`` on miss or any store failure"""
        cache_key = generate_cache_key(endpoint, params)

        if not settings.ENABLE_CACHE or not self.client.is_enabled:
            return None

        CacheOperationLog("check", endpoint, cache_key, request_id).emit()

        cached = await self.client.get(cache_key)
        if cached is None:
            CacheOperationLog("miss", endpoint, cache_key, request_id).emit()
            return None

        try:
            data = json.loads(cached)
        except (json.JSONDecodeError, TypeError) as e:
            CacheOperationLog(
                "error",
                endpoint,
                cache_key,
                request_id,
                error_type="ParseError",
                error_message=str(e),
            ).emit()
            return None

        CacheOperationLog(
            "hit", endpoint, cache_key, request_id, data_size=_size_kb(cached)
        ).emit()
        return data

    # ==================== 저장 ====================

    async def set_cached_data(
        self,
        endpoint: str,
        params: Optional[Mapping[str, Any]],
        data: Any,
        request_id: Optional[str] = None,
    ) -> bool:
        """Store ``data`` under the normalized key with the endpoint TTL"""
        cache_key = generate_cache_key(endpoint, params)

        if not settings.ENABLE_CACHE or not self.client.is_enabled:
            return False

        try:
            serialized = json.dumps(data, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            CacheOperationLog(
                "error",
                endpoint,
                cache_key,
                request_id,
                error_type="SerializeError",
                error_message=str(e),
            ).emit()
            return False

        ttl = self.ttl_for(endpoint)
        CacheOperationLog(
            "set",
            endpoint,
            cache_key,
            request_id,
            data_size=_size_kb(serialized),
            ttl=f"{ttl}s",
        ).emit()

        return await self.client.set(cache_key, serialized, ttl)

    async def invalidate_cache(
        self,
        endpoint: str,
        params: Optional[Mapping[str, Any]],
        request_id: Optional[str] = None,
    ) -> bool:
        cache_key = generate_cache_key(endpoint, params)

        if not self.client.is_enabled:
            return False

        CacheOperationLog("invalidate", endpoint, cache_key, request_id).emit()
        return await self.client.delete(cache_key)

    async def get_status(self) -> Dict[str, Any]:
        return {
            "enabled": await self.is_caching_enabled(),
            "ttl": dict(self.ttl_table),
        }


# 싱글톤 인스턴스
_cache_service: Optional[CacheService] = None


def get_cache_service() -> CacheService:
    """캐시 서비스 싱글톤 반환"""
    global _cache_service
    if _cache_service is None:
        _cache_service = CacheService()
    return _cache_service


def reset_cache_service() -> None:
    global _cache_service
    _cache_service = None
