#!/usr/bin/env python3
"""Print monitor jobs by status and the bookings they produced. Run from backend/."""
import sys
from pathlib import Path

# ensure backend is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import func

from tablewatch.db.session import SessionLocal
from tablewatch.models.booking import Booking
from tablewatch.models.monitor_job import MonitorJob


def main():
    db = SessionLocal()
    try:
        print("=== monitor_jobs ===")
        for status, count in db.query(MonitorJob.status, func.count(MonitorJob.id)).group_by(MonitorJob.status).all():
            print(f"  {status}: {count}")
        jobs = db.query(MonitorJob).order_by(MonitorJob.created_at.desc()).limit(15).all()
        for j in jobs:
            print(
                f"  id={j.id} user={j.user_id!r} place={j.place_id!r} status={j.status} "
                f"ticks={j.ticks_run}/{j.max_ticks} next_run_at={j.next_run_at} leased={j.lease_token is not None}"
            )

        bookings = db.query(Booking).filter(Booking.monitor_job_id.isnot(None)).order_by(Booking.id.desc()).limit(15).all()
        print("\n=== bookings from monitors ===")
        print(f"Count (latest 15): {len(bookings)}")
        for b in bookings:
            print(f"  id={b.id} job={b.monitor_job_id} {b.restaurant_name!r} at {b.slot_datetime} status={b.status}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
