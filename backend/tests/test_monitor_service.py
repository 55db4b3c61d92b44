"""Monitor job lifecycle: start, claim, tick, stop, expiry."""
from datetime import timedelta

import pytest

from tablewatch.core.constants import (
    BOOKING_AWAITING_CONFIRMATION,
    MONITOR_ACTIVE,
    MONITOR_CANCELLED,
    MONITOR_COMPLETED,
    MONITOR_EXPIRED,
)
from tablewatch.core.errors import (
    InvalidMonitorWindowError,
    MonitorAlreadyActiveError,
    MonitorJobExistsError,
    PlaceLookupError,
)
from tablewatch.models.booking import Booking
from tablewatch.models.monitor_job import MonitorJob
from tablewatch.services import monitor_service
from tablewatch.services.monitor_service import MonitorParams
from tablewatch.services.providers.types import AvailabilitySlot
from tests.fakes import FakeNotifier, FakeProvider, place_lookup, utc, verified_slot

NOW = utc(2024, 6, 1, 12, 0)
WINDOW_START = utc(2024, 6, 1, 18, 0)
WINDOW_END = utc(2024, 6, 1, 21, 0)


def _params(user_id="u1", place_id="place-1", **kw) -> MonitorParams:
    values = dict(
        user_id=user_id,
        place_id=place_id,
        time_window_start=WINDOW_START,
        time_window_end=WINDOW_END,
        party_size=2,
    )
    values.update(kw)
    return MonitorParams(**values)


def _start(db, job_id="job-1", params=None, max_ticks=60):
    return monitor_service.start_monitor_job(
        db, job_id, params or _params(), interval_seconds=120, max_ticks=max_ticks, now=NOW
    )


def _claim(db, now=NOW):
    claimed = monitor_service.claim_due_jobs(db, now=now, limit=10, lease_seconds=300)
    return dict(claimed)


def _tick(db, job_id, token, providers, notifier=None, now=NOW, lookup=place_lookup):
    return monitor_service.check_monitor_job(
        db, job_id, token, providers=providers, place_lookup=lookup, notifier=notifier, now=now
    )


def _job(db, job_id="job-1") -> MonitorJob:
    db.expire_all()
    return db.get(MonitorJob, job_id)


class TestStart:
    def test_start_schedules_first_check_now(self, db):
        job = _start(db)
        assert job.status == MONITOR_ACTIVE
        assert job.ticks_run == 0
        assert "job-1" in _claim(db)

    def test_duplicate_active_for_same_user_and_place_rejected(self, db):
        _start(db)
        with pytest.raises(MonitorAlreadyActiveError) as exc:
            _start(db, job_id="job-2")
        assert exc.value.job_id == "job-1"

    def test_other_user_same_place_allowed(self, db):
        _start(db)
        job = _start(db, job_id="job-2", params=_params(user_id="u2"))
        assert job.status == MONITOR_ACTIVE

    def test_invalid_window_rejected(self, db):
        with pytest.raises(InvalidMonitorWindowError):
            _start(db, params=_params(time_window_start=WINDOW_END, time_window_end=WINDOW_START))
        with pytest.raises(InvalidMonitorWindowError):
            _start(db, params=_params(party_size=0))

    def test_restart_after_stop(self, db):
        _start(db)
        monitor_service.stop_monitor_job(db, "job-1")
        job = _start(db, job_id="job-2")
        assert job.status == MONITOR_ACTIVE

    def test_completed_job_id_cannot_be_started_again(self, db):
        _start(db)
        token = _claim(db)["job-1"]
        _tick(db, "job-1", token, [FakeProvider("resy", [verified_slot(utc(2024, 6, 1, 20, 30))])])
        booking_id = _job(db).booking_id
        assert booking_id is not None

        with pytest.raises(MonitorJobExistsError) as exc:
            _start(db, params=_params(user_id="u2"))
        assert exc.value.status == MONITOR_COMPLETED

        job = _job(db)
        assert job.status == MONITOR_COMPLETED
        assert job.user_id == "u1"
        assert job.booking_id == booking_id
        assert job.ticks_run == 1

    def test_cancelled_job_id_cannot_be_started_again(self, db):
        _start(db)
        monitor_service.stop_monitor_job(db, "job-1")
        with pytest.raises(MonitorJobExistsError):
            _start(db)
        assert _job(db).status == MONITOR_CANCELLED

    def test_active_job_id_reused_for_other_place_rejected(self, db):
        _start(db)
        with pytest.raises(MonitorAlreadyActiveError) as exc:
            _start(db, params=_params(place_id="place-2"))
        assert exc.value.job_id == "job-1"


class TestClaim:
    def test_live_lease_blocks_second_claim(self, db):
        _start(db)
        first = _claim(db)
        assert "job-1" in first
        assert _claim(db, now=NOW + timedelta(seconds=10)) == {}

    def test_expired_lease_can_be_reclaimed(self, db):
        _start(db)
        first = _claim(db)
        again = _claim(db, now=NOW + timedelta(seconds=301))
        assert again["job-1"] != first["job-1"]

    def test_not_due_not_claimed(self, db):
        _start(db)
        assert _claim(db, now=NOW - timedelta(seconds=1)) == {}


class TestTick:
    def test_verified_slot_in_window_completes_and_books(self, db):
        _start(db)
        token = _claim(db)["job-1"]
        notifier = FakeNotifier()
        resy = FakeProvider("resy", [verified_slot(utc(2024, 6, 1, 20, 30))])

        outcome = _tick(db, "job-1", token, [resy], notifier)

        assert outcome == monitor_service.TICK_COMPLETED
        job = _job(db)
        assert job.status == MONITOR_COMPLETED
        bookings = db.query(Booking).filter(Booking.monitor_job_id == "job-1").all()
        assert len(bookings) == 1
        assert bookings[0].status == BOOKING_AWAITING_CONFIRMATION
        assert bookings[0].restaurant_name == "Alinea"
        assert job.booking_id == bookings[0].id
        assert len(notifier.calls) == 1
        assert notifier.calls[0]["slot_datetime"] == utc(2024, 6, 1, 20, 30)

    def test_completed_job_is_never_claimed_again(self, db):
        _start(db)
        token = _claim(db)["job-1"]
        _tick(db, "job-1", token, [FakeProvider("resy", [verified_slot(utc(2024, 6, 1, 20, 30))])])
        assert _claim(db, now=NOW + timedelta(hours=3)) == {}

    def test_unverified_or_out_of_window_slots_ignored(self, db):
        _start(db)
        token = _claim(db)["job-1"]
        slots = [
            AvailabilitySlot(datetime=utc(2024, 6, 1, 19, 0), verified=False, provider="resy"),
            verified_slot(utc(2024, 6, 1, 21, 1)),
            verified_slot(utc(2024, 6, 1, 17, 59)),
        ]
        outcome = _tick(db, "job-1", token, [FakeProvider("resy", slots)])
        assert outcome == monitor_service.TICK_NO_MATCH
        job = _job(db)
        assert job.status == MONITOR_ACTIVE
        assert job.ticks_run == 1
        assert job.lease_token is None
        assert db.query(Booking).count() == 0

    def test_window_edges_are_inclusive(self, db):
        _start(db)
        token = _claim(db)["job-1"]
        outcome = _tick(db, "job-1", token, [FakeProvider("resy", [verified_slot(WINDOW_END)])])
        assert outcome == monitor_service.TICK_COMPLETED

    def test_first_provider_with_a_match_wins(self, db):
        _start(db)
        token = _claim(db)["job-1"]
        first = FakeProvider("resy", [verified_slot(utc(2024, 6, 1, 20, 45), provider="resy")])
        second = FakeProvider("yelp_reservations", [verified_slot(utc(2024, 6, 1, 18, 0), provider="yelp")])
        _tick(db, "job-1", token, [first, second])
        booking = db.query(Booking).one()
        assert booking.provider == "resy"
        assert second.requests == []

    def test_no_match_reschedules_after_interval(self, db):
        _start(db)
        token = _claim(db)["job-1"]
        _tick(db, "job-1", token, [FakeProvider("resy")])
        assert _claim(db, now=NOW + timedelta(seconds=119)) == {}
        assert "job-1" in _claim(db, now=NOW + timedelta(seconds=120))

    def test_budget_exhausted_expires_job(self, db):
        _start(db, max_ticks=2)
        now = NOW
        outcomes = []
        for _ in range(2):
            token = _claim(db, now=now)["job-1"]
            outcomes.append(_tick(db, "job-1", token, [FakeProvider("resy")], now=now))
            now += timedelta(seconds=120)
        assert outcomes == [monitor_service.TICK_NO_MATCH, monitor_service.TICK_EXPIRED]
        assert _job(db).status == MONITOR_EXPIRED
        assert _claim(db, now=now + timedelta(hours=1)) == {}

    def test_stop_before_tick_makes_tick_a_noop(self, db):
        _start(db)
        token = _claim(db)["job-1"]
        assert monitor_service.stop_monitor_job(db, "job-1") is True
        resy = FakeProvider("resy", [verified_slot(utc(2024, 6, 1, 20, 30))])
        outcome = _tick(db, "job-1", token, [resy])
        assert outcome == monitor_service.TICK_STALE
        assert resy.requests == []
        assert db.query(Booking).count() == 0
        assert _job(db).status == MONITOR_CANCELLED

    def test_stale_lease_token_is_a_noop(self, db):
        _start(db)
        _claim(db)
        outcome = _tick(db, "job-1", "not-the-token", [FakeProvider("resy", [verified_slot(WINDOW_START)])])
        assert outcome == monitor_service.TICK_STALE
        assert db.query(Booking).count() == 0

    def test_notifier_failure_keeps_booking(self, db):
        _start(db)
        token = _claim(db)["job-1"]
        notifier = FakeNotifier(error=RuntimeError("apns down"))
        outcome = _tick(db, "job-1", token, [FakeProvider("resy", [verified_slot(WINDOW_START)])], notifier)
        assert outcome == monitor_service.TICK_COMPLETED
        assert _job(db).status == MONITOR_COMPLETED
        assert db.query(Booking).count() == 1

    def test_place_lookup_failure_still_checks_providers(self, db):
        def failing_lookup(place_id):
            raise PlaceLookupError("no key")

        _start(db)
        token = _claim(db)["job-1"]
        resy = FakeProvider("resy")
        outcome = _tick(db, "job-1", token, [resy], lookup=failing_lookup)
        assert outcome == monitor_service.TICK_NO_MATCH
        assert resy.requests[0].restaurant_name is None

    def test_request_covers_the_window(self, db):
        _start(db)
        token = _claim(db)["job-1"]
        resy = FakeProvider("resy")
        _tick(db, "job-1", token, [resy])
        request = resy.requests[0]
        assert request.date_time == WINDOW_START
        assert request.window_end == WINDOW_END
        assert request.restaurant_name == "Alinea"

    def test_failed_completion_write_releases_lease_for_next_interval(self, db):
        _start(db)
        token = _claim(db)["job-1"]
        # A booking already linked to this job makes the completion insert fail
        db.add(
            Booking(
                user_id="u1",
                restaurant_name="Alinea",
                slot_datetime=WINDOW_START,
                party_size=2,
                status=BOOKING_AWAITING_CONFIRMATION,
                monitor_job_id="job-1",
            )
        )
        db.commit()

        outcome = _tick(db, "job-1", token, [FakeProvider("resy", [verified_slot(WINDOW_START)])])

        assert outcome == monitor_service.TICK_FAILED
        job = _job(db)
        assert job.status == MONITOR_ACTIVE
        assert job.lease_token is None
        assert db.query(Booking).count() == 1
        assert _claim(db, now=NOW + timedelta(seconds=119)) == {}
        assert "job-1" in _claim(db, now=NOW + timedelta(seconds=120))


class TestStop:
    def test_stop_is_idempotent(self, db):
        _start(db)
        assert monitor_service.stop_monitor_job(db, "job-1") is True
        assert monitor_service.stop_monitor_job(db, "job-1") is False
        assert monitor_service.stop_monitor_job(db, "unknown") is False

    def test_stop_clears_schedule(self, db):
        _start(db)
        monitor_service.stop_monitor_job(db, "job-1")
        job = _job(db)
        assert job.next_run_at is None
        assert _claim(db) == {}

    def test_list_active_only(self, db):
        _start(db)
        _start(db, job_id="job-2", params=_params(place_id="place-2"))
        monitor_service.stop_monitor_job(db, "job-2")
        assert [j.id for j in monitor_service.list_active_monitors(db, "u1")] == ["job-1"]
