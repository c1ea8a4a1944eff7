"""Analytics event schemas"""
from typing import Any, Dict, List, Mapping, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from search_proxy.core.exceptions import ClickValidationError

VALID_CLICK_TYPES = ("search", "staff", "program", "suggestion")


def sanitize_session_id(value: Any) -> Optional[str]:
    """Normalize a raw session id (list, string or other) to a string or None"""
    if not value:
        return None
    if isinstance(value, (list, tuple)):
        return sanitize_session_id(value[0]) if value else None
    if isinstance(value, str):
        return value.strip() or None
    return str(value) or None


class ClickEvent(BaseModel):
    """Click on a search result, as sent by the front-end

    Accepts both the long and short field names used by the different
    front-end components.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    original_query: str = Field(
        default="",
        validation_alias=AliasChoices("originalQuery", "query", "original_query"),
    )
    clicked_url: str = Field(
        default="",
        validation_alias=AliasChoices("clickedUrl", "url", "clicked_url"),
    )
    clicked_title: str = Field(
        default="",
        validation_alias=AliasChoices("clickedTitle", "title", "clicked_title"),
    )
    click_position: int = Field(
        default=-1,
        validation_alias=AliasChoices("clickPosition", "position", "click_position"),
    )
    click_type: str = Field(
        default="search",
        validation_alias=AliasChoices("clickType", "type", "click_type"),
    )
    session_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sessionId", "session_id"),
    )
    client_ip: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("clientIp", "userIp", "client_ip"),
    )

    @field_validator("original_query", "clicked_url", "clicked_title", mode="before")
    @classmethod
    def _strip_text(cls, v):
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("click_position", mode="before")
    @classmethod
    def _parse_position(cls, v):
        try:
            return int(v)
        except (TypeError, ValueError):
            return -1

    @field_validator("click_type", mode="before")
    @classmethod
    def _normalize_click_type(cls, v):
        return v if v in VALID_CLICK_TYPES else "search"

    @field_validator("session_id", mode="before")
    @classmethod
    def _sanitize_session(cls, v):
        return sanitize_session_id(v)

    @field_validator("client_ip", mode="before")
    @classmethod
    def _sanitize_ip(cls, v):
        if not v or v == "unknown":
            return None
        return str(v).strip() or None

    @model_validator(mode="after")
    def _require_query_and_url(self):
        if not self.original_query:
            raise ValueError("Missing required field: originalQuery/query")
        if not self.clicked_url:
            raise ValueError("Missing required field: clickedUrl/url")
        return self


def parse_click_event(raw: Mapping[str, Any], **overrides: Any) -> ClickEvent:
    """Validate a raw click payload

    Raises:
        ClickValidationError: originalQuery or clickedUrl missing
    """
    if not isinstance(raw, Mapping):
        raise ClickValidationError("Click event must be an object")

    data = dict(raw)
    data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return ClickEvent.model_validate(data)
    except ValidationError as e:
        messages = "; ".join(err["msg"].removeprefix("Value error, ") for err in e.errors())
        raise ClickValidationError(messages, received_fields=list(raw.keys())) from e


class QueryData(BaseModel):
    """Completed search/suggestion request to record"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    query: Optional[str] = None
    handler: Optional[str] = None
    session_id: Optional[str] = None
    client_ip: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("clientIp", "userIp", "client_ip"),
    )
    user_agent: Optional[str] = None
    referer: Optional[str] = None
    collection: Optional[str] = None

    # GeoIP
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    timezone: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    response_time: float = 0
    result_count: int = 0
    has_results: Optional[bool] = None
    cache_hit: bool = False

    tabs: List[str] = Field(default_factory=list)
    is_program_tab: bool = False
    is_staff_tab: bool = False
    filters: Optional[Dict[str, Any]] = None
    enrichment_data: Optional[Dict[str, Any]] = None

    error_message: Optional[str] = None
    error_status: Optional[int] = None

    @field_validator("session_id", mode="before")
    @classmethod
    def _sanitize_session(cls, v):
        return sanitize_session_id(v)

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _parse_coordinate(cls, v):
        if v in (None, ""):
            return None
        try:
            return float(v)
        except (TypeError, ValueError):
            return None

    def location(self) -> Optional[Dict[str, Any]]:
        fields = {
            "city": self.city,
            "region": self.region,
            "country": self.country,
            "timezone": self.timezone,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }
        if all(v is None for v in fields.values()):
            return None
        return fields


# ==================== API 요청/응답 ====================


class ClickResponse(BaseModel):
    success: bool = True
    request_id: str = Field(..., serialization_alias="requestId")
    record_id: str = Field(..., serialization_alias="recordId")
    matched: bool


class BatchClickRequest(BaseModel):
    clicks: List[Any] = Field(default_factory=list)


class BatchClickResponse(BaseModel):
    success: bool = True
    processed: int
    total: int
    skipped: int


class SupplementRequest(BaseModel):
    """Supplementary analytics sent by the front-end after rendering results"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    query: Optional[str] = None
    session_id: Optional[Any] = None
    result_count: Optional[int] = None
    enrichment_data: Optional[Dict[str, Any]] = None


class SupplementResponse(BaseModel):
    success: bool = True
    record_id: str = Field(..., serialization_alias="recordId")


class QueryCount(BaseModel):
    query: str
    count: int
    avg_results: Optional[float] = None
    avg_response_time: Optional[float] = None


class StatsSummary(BaseModel):
    total_queries: int = 0
    average_response_time: float = 0
    queries_with_results: int = 0
    queries_with_errors: int = 0
    average_result_count: float = 0


class QueryStatistics(BaseModel):
    summary: StatsSummary
    top_queries: List[QueryCount]
    zero_result_queries: List[QueryCount]
