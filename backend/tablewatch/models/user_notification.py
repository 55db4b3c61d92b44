"""User notification: persisted read state and metadata.

recipient_id: the user id the notification belongs to.
type: notification kind ('monitor_match') for filtering.
read_at: NULL = unread; set when user marks as read.
metadata: type-specific payload (booking_id, place_id, restaurant_name, datetime, ...).
"""
from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from tablewatch.db.base import Base


class UserNotification(Base):
    __tablename__ = "user_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipient_id = Column(String(64), nullable=False, index=True)
    type = Column(String(32), nullable=False, default="monitor_match", index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    payload = Column("metadata", JSON, nullable=False, default=dict)  # column name 'metadata' in DB
