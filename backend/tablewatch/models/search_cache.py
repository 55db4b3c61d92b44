"""Cached ranked search results keyed by intent. Rows past expires_at are treated as misses."""
from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.sql import func

from tablewatch.db.base import Base


class SearchCache(Base):
    __tablename__ = "search_cache"

    cache_key = Column(String(512), primary_key=True)
    payload_json = Column(Text, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
