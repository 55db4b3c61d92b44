"""Start/stop background monitoring of one restaurant and time window."""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tablewatch.api.deps import get_scheduler, get_user_id
from tablewatch.core.constants import MAX_PARTY_SIZE, MIN_PARTY_SIZE
from tablewatch.core.errors import TablewatchError, error_to_http
from tablewatch.db.session import get_db
from tablewatch.scheduler.monitor_job import MonitorScheduler
from tablewatch.services import monitor_service
from tablewatch.services.monitor_service import MonitorParams

router = APIRouter()
logger = logging.getLogger(__name__)


class StartMonitorBody(BaseModel):
    place_id: str = Field(..., min_length=1, max_length=255)
    time_window_start: datetime
    time_window_end: datetime
    party_size: int = Field(2, ge=MIN_PARTY_SIZE, le=MAX_PARTY_SIZE)


@router.post("/monitor/start")
def start_monitor(
    body: StartMonitorBody,
    user_id: str = Depends(get_user_id),
    scheduler: MonitorScheduler = Depends(get_scheduler),
):
    """
    Check the restaurant every couple of minutes (up to the tick budget) and book the first
    verified slot inside the window. 409 if this restaurant is already being monitored.
    """
    params = MonitorParams(
        user_id=user_id,
        place_id=body.place_id.strip(),
        time_window_start=body.time_window_start,
        time_window_end=body.time_window_end,
        party_size=body.party_size,
    )
    try:
        job = scheduler.start_monitor_job(None, params)
    except TablewatchError as e:
        raise error_to_http(e) from e
    return {"ok": True, "job": job}


@router.post("/monitor/stop/{job_id}")
def stop_monitor(
    job_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
    scheduler: MonitorScheduler = Depends(get_scheduler),
):
    """Idempotent: stopping a finished job returns ok with stopped=false."""
    try:
        monitor_service.get_monitor_job(db, job_id, user_id=user_id)
        stopped = scheduler.stop_monitor_job(job_id)
    except TablewatchError as e:
        raise error_to_http(e) from e
    return {"ok": True, "stopped": stopped}


@router.get("/monitor")
def list_monitors(db: Session = Depends(get_db), user_id: str = Depends(get_user_id)):
    rows = monitor_service.list_active_monitors(db, user_id)
    return {"jobs": [j.to_dict() for j in rows]}
