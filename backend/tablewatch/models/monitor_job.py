"""User asks us to keep checking one restaurant/time window. Dispatcher ticks it until a terminal status.

status: ACTIVE | COMPLETED | CANCELLED | EXPIRED. Rows are never deleted, only transitioned.
lease_token/lease_expires_at: set while a worker owns the current tick; a job with a live lease
cannot be claimed again, so ticks for one job never overlap.
"""
from sqlalchemy import Column, DateTime, Index, Integer, String, text
from sqlalchemy.sql import func

from tablewatch.core.constants import MONITOR_ACTIVE
from tablewatch.db.base import Base


class MonitorJob(Base):
    __tablename__ = "monitor_jobs"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    place_id = Column(String(255), nullable=False)
    restaurant_name = Column(String(255), nullable=True)  # filled from place lookup on first tick
    time_window_start = Column(DateTime(timezone=True), nullable=False)
    time_window_end = Column(DateTime(timezone=True), nullable=False)
    party_size = Column(Integer, nullable=False, default=2)
    status = Column(String(16), nullable=False, default=MONITOR_ACTIVE)
    interval_seconds = Column(Integer, nullable=False, default=120)
    max_ticks = Column(Integer, nullable=False, default=60)
    ticks_run = Column(Integer, nullable=False, default=0)
    next_run_at = Column(DateTime(timezone=True), nullable=True, index=True)  # null = not scheduled
    lease_token = Column(String(36), nullable=True)
    lease_expires_at = Column(DateTime(timezone=True), nullable=True)
    last_checked_at = Column(DateTime(timezone=True), nullable=True)
    booking_id = Column(Integer, nullable=True)  # set when COMPLETED
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index(
            "uq_monitor_jobs_active_user_place",
            "user_id",
            "place_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "place_id": self.place_id,
            "restaurant_name": self.restaurant_name,
            "time_window_start": self.time_window_start.isoformat() if self.time_window_start else None,
            "time_window_end": self.time_window_end.isoformat() if self.time_window_end else None,
            "party_size": self.party_size,
            "status": self.status,
            "ticks_run": self.ticks_run,
            "max_ticks": self.max_ticks,
            "next_run_at": self.next_run_at.isoformat() if self.next_run_at else None,
            "last_checked_at": self.last_checked_at.isoformat() if self.last_checked_at else None,
            "booking_id": self.booking_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
