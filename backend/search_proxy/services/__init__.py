"""Business logic services"""
from search_proxy.services.batch_clicks import BatchClickProcessor, BatchResult
from search_proxy.services.cache_keys import generate_cache_key, normalize_params
from search_proxy.services.cache_service import CacheService
from search_proxy.services.click_attribution import (
    AttributionResult,
    ClickAttributionEngine,
    build_click_filter,
)
from search_proxy.services.expiry_sweeper import ExpirySweeper
from search_proxy.services.query_recorder import QueryRecorder
from search_proxy.services.record_store import QueryRecordStore

__all__ = [
    "AttributionResult",
    "BatchClickProcessor",
    "BatchResult",
    "CacheService",
    "ClickAttributionEngine",
    "ExpirySweeper",
    "QueryRecordStore",
    "QueryRecorder",
    "build_click_filter",
    "generate_cache_key",
    "normalize_params",
]
