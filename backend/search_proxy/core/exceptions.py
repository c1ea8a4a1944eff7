"""Analytics layer exceptions

Expected store failures (unavailable, timeout, miss) are reported through
these types or through sentinel return values; they never surface as raw
driver exceptions.
"""
from typing import List, Optional


class SearchAnalyticsError(Exception):
    """Base class for analytics layer errors"""


class AnalyticsValidationError(SearchAnalyticsError):
    """Required fields missing on an incoming event"""

    def __init__(self, message: str, received_fields: Optional[List[str]] = None):
        super().__init__(message)
        self.received_fields = received_fields or []


class ClickValidationError(AnalyticsValidationError):
    """Click event without originalQuery or clickedUrl"""


class QueryValidationError(AnalyticsValidationError):
    """Query event without a query string"""


class RecordStoreUnavailableError(SearchAnalyticsError):
    """Record store unreachable, timed out or failed mid-operation

    Recoverable: the event is dropped for this call and no partial state
    is left behind.
    """
