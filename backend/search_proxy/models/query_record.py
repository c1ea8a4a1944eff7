"""Query analytics records

One ``QueryRecord`` per completed search/suggestion request. Clicks attributed
to a record live in ``clicked_results`` so that appending a click is a single
INSERT rather than a rewrite of the parent row.
"""
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from search_proxy.db.base import Base

EMPTY_QUERY_PLACEHOLDER = "[empty query]"


def utcnow() -> datetime:
    """Naive UTC timestamp, the storage convention for every DateTime column"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class HandlerCategory(str, Enum):
    """Logical request type that produced a record"""

    SUGGEST = "suggest"
    SUGGEST_PEOPLE = "suggestPeople"
    SUGGEST_PROGRAMS = "suggestPrograms"
    SEARCH = "search"
    SUPPLEMENT = "supplement"
    CLICK_ONLY = "click-only"
    OTHER = "other"

    @classmethod
    def parse(cls, value) -> "HandlerCategory":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


class QueryRecord(Base):
    """검색 쿼리 분석 레코드"""

    __tablename__ = "query_records"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    query_text = Column(Text, nullable=False)
    handler_category = Column(String(32), nullable=False, index=True)

    # Correlation keys
    session_id = Column(String(255), nullable=True)
    client_ip = Column(String(64), nullable=True)

    timestamp = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    # Request context
    user_agent = Column(Text, nullable=True)
    referer = Column(Text, nullable=True)
    search_collection = Column(String(255), nullable=True)
    location = Column(JSON, nullable=True)  # GeoIP data, opaque
    filters = Column(JSON, nullable=True)
    enrichment_data = Column(JSON, nullable=True)

    # Observational metadata (write-once)
    result_count = Column(Integer, default=0)
    response_time = Column(Float, default=0)  # milliseconds
    has_results = Column(Boolean, default=False)
    cache_hit = Column(Boolean, default=False)

    error_message = Column(Text, nullable=True)
    error_status = Column(Integer, nullable=True)

    last_click_timestamp = Column(DateTime, nullable=True)

    clicked_results = relationship(
        "ClickedResult",
        back_populates="query_record",
        cascade="all, delete-orphan",
        order_by="ClickedResult.seq",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_query_records_session_timestamp", "session_id", "timestamp"),
        Index("idx_query_records_expires_at", "expires_at"),
    )

    def __repr__(self):
        return f"<QueryRecord(id={self.id}, query={self.query_text[:30]}...)>"


# Click attribution matches on lower(query_text) within a time window
Index(
    "idx_query_records_query_lower_timestamp",
    func.lower(QueryRecord.query_text),
    QueryRecord.timestamp,
    QueryRecord.id,
)


class ClickedResult(Base):
    """Click attributed to a query record (append-only)"""

    __tablename__ = "clicked_results"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    query_record_id = Column(
        String(36),
        ForeignKey("query_records.id", ondelete="CASCADE"),
        nullable=False,
    )
    url = Column(Text, nullable=False)
    title = Column(Text, default="")
    position = Column(Integer, default=0)
    click_type = Column(String(32), default="search")
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    query_record = relationship("QueryRecord", back_populates="clicked_results")

    __table_args__ = (
        Index("idx_clicked_results_record_timestamp", "query_record_id", "timestamp"),
    )

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "title": self.title,
            "position": self.position,
            "clickType": self.click_type,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
