"""Response cache tests"""
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from search_proxy.core.config import settings
from search_proxy.external.redis_client import RedisClient
from search_proxy.services.cache_keys import generate_cache_key
from search_proxy.services.cache_service import CacheService


@pytest.fixture(autouse=True)
def enable_cache(monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_CACHE", True)


class TestCacheService:
    """CacheService 테스트"""

    @pytest.mark.asyncio
    async def test_set_then_get(self, fake_cache):
        service = CacheService(client=fake_cache)
        payload = {"results": [{"title": "Nursing BSN", "url": "https://example.edu/bsn"}]}

        assert await service.set_cached_data("programs", {"query": "nursing"}, payload) is True
        assert await service.get_cached_data("programs", {"query": "nursing"}) == payload

    @pytest.mark.asyncio
    async def test_session_id_does_not_split_entries(self, fake_cache):
        service = CacheService(client=fake_cache)
        await service.set_cached_data("people", {"query": "smith", "sessionId": "a"}, ["x"])

        assert await service.get_cached_data("people", {"query": "smith", "sessionId": "b"}) == ["x"]
        assert len(fake_cache.store) == 1

    @pytest.mark.asyncio
    async def test_miss_returns_none(self, fake_cache):
        service = CacheService(client=fake_cache)
        assert await service.get_cached_data("search", {"query": "unknown"}) is None

    @pytest.mark.parametrize(
        "endpoint,expected",
        [
            ("suggestions", 14400),
            ("suggest", 14400),
            ("programs", 259200),
            ("suggestPrograms", 259200),
            ("people", 86400),
            ("suggestPeople", 86400),
            ("search", 1800),
            ("anything-else", 1800),
        ],
    )
    def test_ttl_by_endpoint(self, fake_cache, endpoint, expected):
        service = CacheService(
            client=fake_cache,
            ttl_table={"suggestions": 14400, "programs": 259200, "people": 86400, "default": 1800},
        )
        assert service.ttl_for(endpoint) == expected

    @pytest.mark.asyncio
    async def test_entry_written_with_endpoint_ttl(self, fake_cache):
        service = CacheService(client=fake_cache)
        await service.set_cached_data("suggestions", {"query": "bio"}, ["biology"])

        key = generate_cache_key("suggestions", {"query": "bio"})
        assert await fake_cache.ttl(key) == settings.CACHE_TTL_SUGGESTIONS

    @pytest.mark.asyncio
    async def test_unavailable_store_degrades(self, fake_cache):
        fake_cache.available = False
        service = CacheService(client=fake_cache)

        assert await service.set_cached_data("search", {"query": "x"}, {"a": 1}) is False
        assert await service.get_cached_data("search", {"query": "x"}) is None
        assert await service.is_caching_enabled() is False

    @pytest.mark.asyncio
    async def test_cache_disabled_by_setting(self, fake_cache, monkeypatch):
        monkeypatch.setattr(settings, "ENABLE_CACHE", False)
        service = CacheService(client=fake_cache)

        assert await service.set_cached_data("search", {"query": "x"}, {"a": 1}) is False
        assert fake_cache.store == {}

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_a_miss(self, fake_cache):
        service = CacheService(client=fake_cache)
        key = generate_cache_key("search", {"query": "x"})
        await fake_cache.set(key, "{not json", 60)

        assert await service.get_cached_data("search", {"query": "x"}) is None

    @pytest.mark.asyncio
    async def test_unserializable_payload_not_stored(self, fake_cache):
        service = CacheService(client=fake_cache)

        assert await service.set_cached_data("search", {"query": "x"}, {"bad": object()}) is False
        assert fake_cache.store == {}

    @pytest.mark.asyncio
    async def test_client_errors_become_miss(self):
        client = MagicMock()
        client.is_enabled = True
        client.get = AsyncMock(return_value=None)
        client.set = AsyncMock(return_value=False)
        service = CacheService(client=client)

        assert await service.get_cached_data("people", {"query": "x"}) is None
        assert await service.set_cached_data("people", {"query": "x"}, []) is False
        client.set.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_invalidate(self, fake_cache):
        service = CacheService(client=fake_cache)
        await service.set_cached_data("search", {"query": "x"}, {"a": 1})

        assert await service.invalidate_cache("search", {"query": "x"}) is True
        assert await service.get_cached_data("search", {"query": "x"}) is None

    @pytest.mark.asyncio
    async def test_structured_log_line(self, fake_cache, caplog):
        service = CacheService(client=fake_cache)
        caplog.set_level("INFO", logger="search_proxy.services.cache_service")

        await service.get_cached_data("search", {"query": "x"}, request_id="req_1")

        lines = [r.getMessage() for r in caplog.records if r.getMessage().startswith("CACHE-LOG: ")]
        entries = [json.loads(line[len("CACHE-LOG: "):]) for line in lines]
        assert [e["operation"] for e in entries] == ["check", "miss"]
        assert entries[0]["service"] == "cache-search"
        assert entries[0]["requestId"] == "req_1"


class TestRedisClient:
    """RedisClient 장애 처리 테스트"""

    @pytest.mark.asyncio
    async def test_unconfigured_url_disables_client(self):
        client = RedisClient(url="")

        assert client.is_enabled is False
        assert await client.connect() is False
        assert await client.get("key") is None
        assert await client.set("key", "value", 60) is False

    @pytest.mark.asyncio
    async def test_slow_call_times_out_as_miss(self):
        client = RedisClient(url="redis://localhost:6379", timeout=0.05)

        async def slow_get(key):
            await asyncio.sleep(1)
            return "late"

        client._client = MagicMock()
        client._client.get = slow_get

        assert await client.get("key") is None

    @pytest.mark.asyncio
    async def test_failed_call_drops_connection(self):
        client = RedisClient(url="redis://localhost:6379", timeout=0.5)
        mock_redis = MagicMock()
        mock_redis.get = AsyncMock(side_effect=ConnectionError("connection reset"))
        mock_redis.aclose = AsyncMock()
        client._client = mock_redis

        assert await client.get("key") is None
        assert client.is_connected is False
        mock_redis.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_setex_used_with_ttl(self):
        client = RedisClient(url="redis://localhost:6379", timeout=0.5)
        mock_redis = MagicMock()
        mock_redis.setex = AsyncMock(return_value=True)
        client._client = mock_redis

        assert await client.set("key", "value", 120) is True
        mock_redis.setex.assert_awaited_once_with("key", 120, "value")

    @pytest.mark.asyncio
    async def test_reconnect_attempts_are_bounded(self):
        client = RedisClient(url="redis://localhost:1", timeout=0.1, max_retries=2)
        unreachable = MagicMock()
        unreachable.ping = AsyncMock(side_effect=ConnectionError("refused"))
        unreachable.aclose = AsyncMock()

        with patch("redis.asyncio.from_url", return_value=unreachable) as from_url:
            assert await client.get("a") is None
            assert await client.get("b") is None
            assert client.is_enabled is False
            assert await client.get("c") is None

        assert from_url.call_count == 2

    @pytest.mark.asyncio
    async def test_reconnects_after_cooldown(self):
        client = RedisClient(
            url="redis://localhost:6379", timeout=0.1, max_retries=2, reconnect_cooldown=60
        )
        unreachable = MagicMock()
        unreachable.ping = AsyncMock(side_effect=ConnectionError("refused"))
        unreachable.aclose = AsyncMock()
        recovered = MagicMock()
        recovered.ping = AsyncMock(return_value=True)
        recovered.get = AsyncMock(return_value="cached")

        with patch("redis.asyncio.from_url", return_value=unreachable):
            await client.get("a")
            await client.get("b")
        assert client.is_enabled is False

        # Outage ended more than a cooldown ago
        client._last_failure -= 61
        assert client.is_enabled is True

        with patch("redis.asyncio.from_url", return_value=recovered) as from_url:
            assert await client.get("key") == "cached"

        from_url.assert_called_once()
        assert client.is_connected is True
        assert client.is_enabled is True
