"""Pydantic schemas for request/response validation"""
from search_proxy.schemas.analytics import (
    BatchClickRequest,
    BatchClickResponse,
    ClickEvent,
    ClickResponse,
    QueryData,
    QueryStatistics,
    SupplementRequest,
    SupplementResponse,
    parse_click_event,
)

__all__ = [
    "BatchClickRequest",
    "BatchClickResponse",
    "ClickEvent",
    "ClickResponse",
    "QueryData",
    "QueryStatistics",
    "SupplementRequest",
    "SupplementResponse",
    "parse_click_event",
]
