"""A booking made from a confirmed search result or by the monitor scheduler on a match."""
from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from tablewatch.db.base import Base


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    place_id = Column(String(255), nullable=True)
    restaurant_name = Column(String(255), nullable=False)
    restaurant_address = Column(String(512), nullable=True)
    platform = Column(String(255), nullable=True)  # e.g. "OpenTable, Resy" for merged search results
    provider = Column(String(32), nullable=True)  # provider id for monitor bookings and fallback hand-offs
    slot_datetime = Column(DateTime(timezone=True), nullable=False)
    party_size = Column(Integer, nullable=False)
    # AWAITING_CONFIRMATION | PENDING_EXTERNAL | CONFIRMED | CANCELLED
    status = Column(String(32), nullable=False)
    booking_url = Column(Text, nullable=True)
    monitor_job_id = Column(String(36), nullable=True, unique=True)  # at most one booking per monitor job
    slot_metadata = Column(JSON, nullable=True)
    cancel_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "place_id": self.place_id,
            "restaurant_name": self.restaurant_name,
            "restaurant_address": self.restaurant_address,
            "platform": self.platform,
            "provider": self.provider,
            "datetime": self.slot_datetime.isoformat() if self.slot_datetime else None,
            "party_size": self.party_size,
            "status": self.status,
            "booking_url": self.booking_url,
            "monitor_job_id": self.monitor_job_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
