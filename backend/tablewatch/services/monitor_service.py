"""
Monitor jobs: keep checking one restaurant/time window until a verified slot shows up.

The monitor_jobs row is the single source of truth. Every transition is a conditional UPDATE
(WHERE status = 'ACTIVE' [AND lease_token = ...]) whose affected-row count decides who won:

  start   -> row ACTIVE with next_run_at = now (first check on the next dispatch)
  claim   -> lease_token/lease_expires_at written; only the holder may run the tick
  tick    -> COMPLETED + Booking (one transaction), or ticks_run += 1 and re-scheduled,
             or EXPIRED once the tick budget is used up
  stop    -> CANCELLED, schedule and lease cleared

A stop racing an in-flight tick is resolved by the tick's re-read and by the conditional
completion: once CANCELLED, no tick can complete the job.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tablewatch.core.constants import (
    BOOKING_AWAITING_CONFIRMATION,
    MAX_PARTY_SIZE,
    MIN_PARTY_SIZE,
    MONITOR_ACTIVE,
    MONITOR_CANCELLED,
    MONITOR_COMPLETED,
    MONITOR_EXPIRED,
)
from tablewatch.core.dates import as_utc, utcnow
from tablewatch.core.errors import (
    InvalidMonitorWindowError,
    MonitorAlreadyActiveError,
    MonitorJobExistsError,
    MonitorNotFoundError,
    PersistenceError,
    PlaceLookupError,
)
from tablewatch.models.booking import Booking
from tablewatch.models.monitor_job import MonitorJob
from tablewatch.services.places import PlaceDetails
from tablewatch.services.providers.base import AvailabilityProvider
from tablewatch.services.providers.types import AvailabilityRequest, AvailabilitySlot

logger = logging.getLogger(__name__)

# Tick outcomes (returned for logging and tests)
TICK_STALE = "stale"
TICK_COMPLETED = "completed"
TICK_NO_MATCH = "no_match"
TICK_EXPIRED = "expired"
TICK_FAILED = "failed"


@dataclass(frozen=True)
class MonitorParams:
    user_id: str
    place_id: str
    time_window_start: datetime
    time_window_end: datetime
    party_size: int

    def __post_init__(self):
        object.__setattr__(self, "time_window_start", as_utc(self.time_window_start))
        object.__setattr__(self, "time_window_end", as_utc(self.time_window_end))


def validate_params(params: MonitorParams) -> None:
    if not params.place_id or not params.place_id.strip():
        raise InvalidMonitorWindowError("place_id is required")
    if params.time_window_end <= params.time_window_start:
        raise InvalidMonitorWindowError("time_window_end must be after time_window_start")
    if not (MIN_PARTY_SIZE <= params.party_size <= MAX_PARTY_SIZE):
        raise InvalidMonitorWindowError(f"party_size must be between {MIN_PARTY_SIZE} and {MAX_PARTY_SIZE}")


def _find_active(db: Session, user_id: str, place_id: str) -> MonitorJob | None:
    return (
        db.query(MonitorJob)
        .filter(
            MonitorJob.user_id == user_id,
            MonitorJob.place_id == place_id,
            MonitorJob.status == MONITOR_ACTIVE,
        )
        .first()
    )


def start_monitor_job(
    db: Session,
    job_id: str,
    params: MonitorParams,
    *,
    interval_seconds: int,
    max_ticks: int,
    now: datetime | None = None,
) -> MonitorJob:
    """
    Create the job row and schedule its first check immediately. A job id is used once: finished
    jobs keep their row, status and booking link.
    Raises InvalidMonitorWindowError, MonitorAlreadyActiveError, MonitorJobExistsError or PersistenceError.
    """
    validate_params(params)
    now = now or utcnow()
    try:
        existing = _find_active(db, params.user_id, params.place_id)
        if existing is not None:
            raise MonitorAlreadyActiveError(params.user_id, params.place_id, job_id=existing.id)

        taken = db.get(MonitorJob, job_id)
        if taken is not None:
            if taken.status == MONITOR_ACTIVE:
                raise MonitorAlreadyActiveError(taken.user_id, taken.place_id, job_id=taken.id)
            raise MonitorJobExistsError(job_id, taken.status)

        job = MonitorJob(
            id=job_id,
            user_id=params.user_id,
            place_id=params.place_id,
            time_window_start=params.time_window_start,
            time_window_end=params.time_window_end,
            party_size=params.party_size,
            status=MONITOR_ACTIVE,
            interval_seconds=interval_seconds,
            max_ticks=max_ticks,
            ticks_run=0,
            next_run_at=now,
        )
        db.add(job)
        db.commit()
    except IntegrityError as e:
        # Lost the race against a concurrent start for the same (user, place) or job id
        db.rollback()
        raise MonitorAlreadyActiveError(params.user_id, params.place_id) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("start_monitor_job %s failed: %s", job_id, e, exc_info=True)
        raise PersistenceError(f"Could not start monitor job {job_id}") from e
    db.refresh(job)
    logger.info(
        "Monitor %s started: user=%s place=%s window=%s..%s party=%s",
        job_id,
        params.user_id,
        params.place_id,
        params.time_window_start.isoformat(),
        params.time_window_end.isoformat(),
        params.party_size,
    )
    return job


def stop_monitor_job(db: Session, job_id: str) -> bool:
    """
    ACTIVE -> CANCELLED. Idempotent: returns False if the job was already terminal or unknown.
    Raises PersistenceError if the write fails.
    """
    try:
        n = (
            db.query(MonitorJob)
            .filter(MonitorJob.id == job_id, MonitorJob.status == MONITOR_ACTIVE)
            .update(
                {
                    MonitorJob.status: MONITOR_CANCELLED,
                    MonitorJob.next_run_at: None,
                    MonitorJob.lease_token: None,
                    MonitorJob.lease_expires_at: None,
                },
                synchronize_session=False,
            )
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("stop_monitor_job %s failed: %s", job_id, e, exc_info=True)
        raise PersistenceError(f"Could not stop monitor job {job_id}") from e
    if n:
        logger.info("Monitor %s cancelled", job_id)
    else:
        logger.debug("Monitor %s not active; stop is a no-op", job_id)
    return n == 1


def get_monitor_job(db: Session, job_id: str, user_id: str | None = None) -> MonitorJob:
    q = db.query(MonitorJob).filter(MonitorJob.id == job_id)
    if user_id is not None:
        q = q.filter(MonitorJob.user_id == user_id)
    job = q.first()
    if job is None:
        raise MonitorNotFoundError(job_id)
    return job


def list_active_monitors(db: Session, user_id: str) -> list[MonitorJob]:
    return (
        db.query(MonitorJob)
        .filter(MonitorJob.user_id == user_id, MonitorJob.status == MONITOR_ACTIVE)
        .order_by(MonitorJob.created_at.desc())
        .all()
    )


def claim_due_jobs(
    db: Session,
    *,
    now: datetime | None = None,
    limit: int = 10,
    lease_seconds: int = 300,
) -> list[tuple[str, str]]:
    """
    Lease up to `limit` due jobs. Returns [(job_id, lease_token)] for the jobs this caller won.
    A job is due when ACTIVE, next_run_at <= now and its lease is free or expired.
    """
    now = now or utcnow()
    lease_free = or_(MonitorJob.lease_expires_at.is_(None), MonitorJob.lease_expires_at <= now)
    due_ids = [
        row.id
        for row in db.query(MonitorJob.id)
        .filter(
            MonitorJob.status == MONITOR_ACTIVE,
            MonitorJob.next_run_at.isnot(None),
            MonitorJob.next_run_at <= now,
            lease_free,
        )
        .order_by(MonitorJob.next_run_at)
        .limit(limit)
        .all()
    ]
    claimed: list[tuple[str, str]] = []
    for job_id in due_ids:
        token = str(uuid.uuid4())
        n = (
            db.query(MonitorJob)
            .filter(MonitorJob.id == job_id, MonitorJob.status == MONITOR_ACTIVE, lease_free)
            .update(
                {
                    MonitorJob.lease_token: token,
                    MonitorJob.lease_expires_at: now + timedelta(seconds=lease_seconds),
                },
                synchronize_session=False,
            )
        )
        if n == 1:
            claimed.append((job_id, token))
    db.commit()
    return claimed


def qualifying_slots(
    slots: list[AvailabilitySlot], window_start: datetime, window_end: datetime
) -> list[AvailabilitySlot]:
    """Verified slots inside [window_start, window_end], both ends inclusive, in provider order."""
    start, end = as_utc(window_start), as_utc(window_end)
    return [s for s in slots if s.verified and start <= s.datetime <= end]


def _lookup_place(place_lookup: Callable[[str], PlaceDetails] | None, place_id: str) -> PlaceDetails | None:
    if place_lookup is None:
        return None
    try:
        return place_lookup(place_id)
    except PlaceLookupError as e:
        logger.warning("Place lookup failed for %s: %s", place_id, e)
    except Exception as e:
        logger.warning("Place lookup raised for %s: %s", place_id, e, exc_info=True)
    return None


def _find_match(
    providers: list[AvailabilityProvider], request: AvailabilityRequest, window_end: datetime
) -> tuple[AvailabilityProvider, AvailabilitySlot] | None:
    """First provider (in priority order) with a qualifying slot wins; its first qualifying slot is taken."""
    for provider in providers:
        try:
            slots = provider.get_availability(request)
        except Exception as e:
            logger.warning("[%s] provider raised despite fail-soft contract: %s", provider.provider_id, e)
            continue
        matches = qualifying_slots(slots or [], request.date_time, window_end)
        if matches:
            return provider, matches[0]
    return None


def check_monitor_job(
    db: Session,
    job_id: str,
    lease_token: str,
    *,
    providers: list[AvailabilityProvider],
    place_lookup: Callable[[str], PlaceDetails] | None = None,
    notifier=None,
    now: datetime | None = None,
) -> str:
    """
    Run one tick for a leased job. Returns one of the TICK_* outcomes.
    Never raises for provider, lookup or notification failures. A failed completion write is
    logged, the lease is given back and the job is retried on its next scheduled tick.
    """
    job = db.query(MonitorJob).filter(MonitorJob.id == job_id).first()
    if job is None or job.status != MONITOR_ACTIVE or job.lease_token != lease_token:
        logger.debug("Monitor %s: stale tick (status=%s)", job_id, job.status if job else None)
        return TICK_STALE

    window_start = as_utc(job.time_window_start)
    window_end = as_utc(job.time_window_end)
    details = _lookup_place(place_lookup, job.place_id)
    restaurant_name = details.name if details else job.restaurant_name
    request = AvailabilityRequest(
        place_id=job.place_id,
        date_time=window_start,
        party_size=job.party_size,
        restaurant_name=restaurant_name,
        window_end=window_end,
        restaurant_address=details.address if details else None,
        lat=details.lat if details else None,
        lng=details.lng if details else None,
    )
    match = _find_match(providers, request, window_end)
    now = now or utcnow()

    if match is None:
        return _record_no_match(db, job, lease_token, restaurant_name, now)

    provider, slot = match
    user_id, place_id, party_size = job.user_id, job.place_id, job.party_size
    interval_seconds = job.interval_seconds
    try:
        n = (
            db.query(MonitorJob)
            .filter(
                MonitorJob.id == job_id,
                MonitorJob.status == MONITOR_ACTIVE,
                MonitorJob.lease_token == lease_token,
            )
            .update(
                {
                    MonitorJob.status: MONITOR_COMPLETED,
                    MonitorJob.ticks_run: MonitorJob.ticks_run + 1,
                    MonitorJob.last_checked_at: now,
                    MonitorJob.next_run_at: None,
                    MonitorJob.lease_token: None,
                    MonitorJob.lease_expires_at: None,
                    MonitorJob.restaurant_name: restaurant_name,
                },
                synchronize_session=False,
            )
        )
        if n != 1:
            # Stopped (or re-leased) between our read and this write
            db.rollback()
            logger.info("Monitor %s: match found but job no longer ours; no booking", job_id)
            return TICK_STALE
        booking = Booking(
            user_id=user_id,
            place_id=place_id,
            restaurant_name=restaurant_name or place_id,
            restaurant_address=details.address if details else None,
            platform=slot.metadata.get("platform") or provider.provider_id,
            provider=provider.provider_id,
            slot_datetime=slot.datetime,
            party_size=party_size,
            status=BOOKING_AWAITING_CONFIRMATION,
            booking_url=slot.booking_url,
            monitor_job_id=job_id,
            slot_metadata=slot.metadata or None,
        )
        db.add(booking)
        db.flush()
        booking_id = booking.id
        db.query(MonitorJob).filter(MonitorJob.id == job_id).update(
            {MonitorJob.booking_id: booking_id}, synchronize_session=False
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Monitor %s: could not record match: %s", job_id, e, exc_info=True)
        _release_lease(db, job_id, lease_token, now + timedelta(seconds=interval_seconds))
        return TICK_FAILED

    logger.info(
        "Monitor %s completed: %s slot %s -> booking %s",
        job_id,
        provider.provider_id,
        slot.datetime.isoformat(),
        booking_id,
    )
    if notifier is not None:
        try:
            notifier.notify_monitor_match(
                user_id=user_id,
                booking_id=booking_id,
                place_id=place_id,
                restaurant_name=restaurant_name or place_id,
                party_size=party_size,
                slot_datetime=slot.datetime,
            )
        except Exception as e:
            logger.warning("Monitor %s: notification failed (booking kept): %s", job_id, e, exc_info=True)
    return TICK_COMPLETED


def _release_lease(db: Session, job_id: str, lease_token: str, next_run_at: datetime) -> None:
    """Give the lease back after a failed write so the next scheduled tick retries, not the lease expiry."""
    try:
        db.query(MonitorJob).filter(
            MonitorJob.id == job_id,
            MonitorJob.status == MONITOR_ACTIVE,
            MonitorJob.lease_token == lease_token,
        ).update(
            {
                MonitorJob.lease_token: None,
                MonitorJob.lease_expires_at: None,
                MonitorJob.next_run_at: next_run_at,
            },
            synchronize_session=False,
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Monitor %s: could not release lease; retried after it expires: %s", job_id, e)


def _record_no_match(
    db: Session, job: MonitorJob, lease_token: str, restaurant_name: str | None, now: datetime
) -> str:
    ticks_run = (job.ticks_run or 0) + 1
    max_ticks = job.max_ticks
    retry_at = now + timedelta(seconds=job.interval_seconds)
    expired = ticks_run >= max_ticks
    values = {
        MonitorJob.ticks_run: ticks_run,
        MonitorJob.last_checked_at: now,
        MonitorJob.lease_token: None,
        MonitorJob.lease_expires_at: None,
        MonitorJob.restaurant_name: restaurant_name,
    }
    if expired:
        values[MonitorJob.status] = MONITOR_EXPIRED
        values[MonitorJob.next_run_at] = None
    else:
        values[MonitorJob.next_run_at] = retry_at
    job_id = job.id
    try:
        n = (
            db.query(MonitorJob)
            .filter(
                MonitorJob.id == job_id,
                MonitorJob.status == MONITOR_ACTIVE,
                MonitorJob.lease_token == lease_token,
            )
            .update(values, synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Monitor %s: could not record tick: %s", job_id, e, exc_info=True)
        _release_lease(db, job_id, lease_token, retry_at)
        return TICK_FAILED
    if n != 1:
        return TICK_STALE
    if expired:
        logger.info("Monitor %s expired after %s checks without a verified slot", job_id, ticks_run)
        return TICK_EXPIRED
    logger.debug("Monitor %s: no verified slot (check %s/%s)", job_id, ticks_run, max_ticks)
    return TICK_NO_MATCH
