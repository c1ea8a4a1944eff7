"""External store clients"""
from search_proxy.external.base_cache_client import BaseCacheClient
from search_proxy.external.redis_client import RedisClient

__all__ = ["BaseCacheClient", "RedisClient"]
