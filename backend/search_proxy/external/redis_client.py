"""Redis 클라이언트 - 응답 캐시 저장소"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Optional

import redis.asyncio as redis
from redis.asyncio import Redis

from search_proxy.core.config import settings
from search_proxy.external.base_cache_client import BaseCacheClient

logger = logging.getLogger(__name__)


class RedisClient(BaseCacheClient):
    """비동기 Redis 클라이언트 - BaseCacheClient 구현

    The connection is established lazily on first use and reused afterwards.
    A dropped connection is re-established on the next call, up to
    ``max_retries`` consecutive failed attempts. After that the client is
    disabled for ``reconnect_cooldown`` seconds, then a new round of
    attempts is allowed.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        reconnect_cooldown: Optional[float] = None,
    ):
        self.url = settings.REDIS_URL if url is None else url
        self.timeout = timeout or settings.STORE_TIMEOUT_SECONDS
        self.max_retries = max_retries or settings.STORE_MAX_RETRIES
        self.reconnect_cooldown = (
            settings.STORE_RECONNECT_COOLDOWN_SECONDS
            if reconnect_cooldown is None
            else reconnect_cooldown
        )
        self._client: Optional[Redis] = None
        self._failed_attempts = 0
        self._last_failure: Optional[float] = None

    def _retries_exhausted(self) -> bool:
        return self._failed_attempts >= self.max_retries

    def _cooling_down(self) -> bool:
        if not self._retries_exhausted() or self._last_failure is None:
            return False
        return time.monotonic() - self._last_failure < self.reconnect_cooldown

    @property
    def is_enabled(self) -> bool:
        """Redis 활성화 여부"""
        return bool(self.url) and not self._cooling_down()

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> bool:
        """Redis 연결"""
        if not self.url:
            logger.warning("⚠️ REDIS_URL not configured, cache disabled")
            return False

        self._failed_attempts = 0
        return await self._ensure_client()

    async def _ensure_client(self) -> bool:
        if self._client is not None:
            return True
        if not self.is_enabled:
            return False
        if self._retries_exhausted():
            logger.info("Redis 재연결 대기 시간 경과, 재시도")
            self._failed_attempts = 0

        client = redis.from_url(
            self.url,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=self.timeout,
            socket_connect_timeout=self.timeout,
        )
        try:
            # 연결 테스트
            await asyncio.wait_for(client.ping(), self.timeout)
        except Exception as e:
            self._failed_attempts += 1
            self._last_failure = time.monotonic()
            logger.warning(
                f"⚠️ Redis 연결 실패 ({self._failed_attempts}/{self.max_retries}): {e}"
            )
            await self._dispose(client)
            return False

        self._client = client
        self._failed_attempts = 0
        logger.info(f"✅ Redis 연결 성공: {self.url}")
        return True

    async def close(self) -> None:
        """Redis 연결 종료"""
        if self._client:
            await self._dispose(self._client)
            self._client = None
            logger.info("👋 Redis 연결 종료")

    @staticmethod
    async def _dispose(client: Redis) -> None:
        try:
            await client.aclose()
        except Exception as e:
            logger.debug(f"Redis close error ignored: {e}")

    async def _call(self, operation: str, awaitable_factory, default: Any) -> Any:
        """Run one store call under the bounded timeout.

        A failed call drops the connection so the next call reconnects.
        """
        if not await self._ensure_client():
            return default
        try:
            return await asyncio.wait_for(awaitable_factory(self._client), self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Redis {operation} 시간 초과 ({self.timeout}s)")
        except Exception as e:
            logger.error(f"Redis {operation} 오류: {e}")
            client, self._client = self._client, None
            if client is not None:
                await self._dispose(client)
        return default

    # ==================== 기본 연산 ====================

    async def ping(self) -> bool:
        result = await self._call("PING", lambda c: c.ping(), False)
        return bool(result)

    async def get(self, key: str) -> Optional[str]:
        """값 조회"""
        return await self._call("GET", lambda c: c.get(key), None)

    async def set(
        self,
        key: str,
        value: str,
        ttl: Optional[int] = None,
    ) -> bool:
        """값 저장"""

        def _write(c: Redis) -> Awaitable:
            if ttl:
                return c.setex(key, ttl, value)
            return c.set(key, value)

        result = await self._call("SET", _write, None)
        return bool(result)

    async def delete(self, key: str) -> bool:
        """키 삭제"""
        result = await self._call("DELETE", lambda c: c.delete(key), None)
        return result is not None

    async def ttl(self, key: str) -> int:
        """키 남은 TTL 조회"""
        return await self._call("TTL", lambda c: c.ttl(key), -2)


# 싱글톤 인스턴스
_redis_client: Optional[RedisClient] = None


def get_redis_client() -> RedisClient:
    """Redis 클라이언트 싱글톤 반환"""
    global _redis_client
    if _redis_client is None:
        _redis_client = RedisClient()
    return _redis_client


async def initialize_redis() -> bool:
    """Redis 초기화"""
    if not settings.ENABLE_CACHE:
        logger.info("⚠️ 캐시 기능 비활성화됨 (ENABLE_CACHE=false)")
        return False
    client = get_redis_client()
    return await client.connect()


async def close_redis():
    """Redis 종료"""
    global _redis_client
    if _redis_client:
        await _redis_client.close()
        _redis_client = None
