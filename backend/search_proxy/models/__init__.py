"""SQLAlchemy models"""
from search_proxy.models.query_record import (
    EMPTY_QUERY_PLACEHOLDER,
    ClickedResult,
    HandlerCategory,
    QueryRecord,
)

__all__ = ["EMPTY_QUERY_PLACEHOLDER", "ClickedResult", "HandlerCategory", "QueryRecord"]
