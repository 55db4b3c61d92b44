"""MonitorScheduler: dispatch through the worker pool and the start/stop facades."""
import threading
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from tablewatch.config import Settings
from tablewatch.core.constants import MONITOR_CANCELLED, MONITOR_COMPLETED
from tablewatch.core.dates import utcnow
from tablewatch.core.errors import MonitorAlreadyActiveError, MonitorJobExistsError, error_to_http
from tablewatch.db.base import Base
from tablewatch.models.booking import Booking
from tablewatch.models.monitor_job import MonitorJob
from tablewatch.scheduler.monitor_job import MonitorScheduler
from tablewatch.services import monitor_service
from tablewatch.services.monitor_service import MonitorParams
from tablewatch.services.providers.deeplink_provider import DeeplinkProvider
from tablewatch.services.providers.registry import ProviderRegistry
from tests.fakes import FakeNotifier, FakeProvider, place_lookup, verified_slot


class BlockingProvider(FakeProvider):
    """Holds every availability call until the test releases it."""

    def __init__(self, release: threading.Event):
        super().__init__("resy")
        self._release = release

    def get_availability(self, request):
        self._release.wait(timeout=5)
        return super().get_availability(request)


@pytest.fixture
def session_factory(tmp_path):
    """File-backed so each worker thread gets its own connection."""
    eng = create_engine(f"sqlite:///{tmp_path / 'monitor.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(eng)
    yield sessionmaker(autocommit=False, autoflush=False, bind=eng)
    eng.dispose()


@pytest.fixture
def window():
    start = utcnow().replace(microsecond=0) + timedelta(days=1)
    return start, start + timedelta(hours=3)


@pytest.fixture
def registry():
    return ProviderRegistry()


@pytest.fixture
def scheduler(session_factory, registry):
    settings = Settings(_env_file=None, database_url="sqlite://", monitor_max_workers=2)
    s = MonitorScheduler(
        session_factory, registry, settings, place_lookup=place_lookup, notifier=FakeNotifier()
    )
    yield s
    s.shutdown(wait=True)


def _params(window, place_id="place-1") -> MonitorParams:
    start, end = window
    return MonitorParams(
        user_id="u1", place_id=place_id, time_window_start=start, time_window_end=end, party_size=4
    )


class TestMonitorScheduler:
    def test_dispatch_runs_due_job_to_completion(self, scheduler, registry, session_factory, window):
        registry.register_provider(DeeplinkProvider())
        registry.register_provider(FakeProvider("resy", [verified_slot(window[0] + timedelta(minutes=30))]))
        job = scheduler.start_monitor_job("job-1", _params(window))
        assert job["status"] == "ACTIVE"

        futures = scheduler.dispatch()
        assert [f.result(timeout=5) for f in futures] == [monitor_service.TICK_COMPLETED]

        db = session_factory()
        try:
            assert db.get(MonitorJob, "job-1").status == MONITOR_COMPLETED
            booking = db.query(Booking).one()
            assert booking.provider == "resy"
            assert booking.party_size == 4
        finally:
            db.close()
        assert scheduler.in_flight() == set()

    def test_deeplink_alone_never_completes(self, scheduler, registry, session_factory, window):
        registry.register_provider(DeeplinkProvider())
        scheduler.start_monitor_job("job-1", _params(window))
        futures = scheduler.dispatch()
        assert [f.result(timeout=5) for f in futures] == [monitor_service.TICK_NO_MATCH]
        db = session_factory()
        try:
            assert db.query(Booking).count() == 0
        finally:
            db.close()

    def test_second_dispatch_does_not_rerun_scheduled_job(self, scheduler, registry, window):
        registry.register_provider(FakeProvider("resy"))
        scheduler.start_monitor_job("job-1", _params(window))
        for f in scheduler.dispatch():
            f.result(timeout=5)
        assert scheduler.dispatch() == []

    def test_dispatch_claims_at_most_free_workers(self, scheduler, registry, window):
        registry.register_provider(FakeProvider("resy"))
        for i in range(3):
            scheduler.start_monitor_job(f"job-{i}", _params(window, place_id=f"place-{i}"))
        futures = scheduler.dispatch()
        assert len(futures) == 2
        for f in futures:
            f.result(timeout=5)
        assert len(scheduler.dispatch()) == 1

    def test_stop_cancels_and_is_idempotent(self, scheduler, session_factory, window):
        scheduler.start_monitor_job("job-1", _params(window))
        assert scheduler.stop_monitor_job("job-1") is True
        assert scheduler.stop_monitor_job("job-1") is False
        assert scheduler.dispatch() == []
        db = session_factory()
        try:
            assert db.get(MonitorJob, "job-1").status == MONITOR_CANCELLED
        finally:
            db.close()

    def test_start_rejects_duplicate(self, scheduler, window):
        scheduler.start_monitor_job(None, _params(window))
        with pytest.raises(MonitorAlreadyActiveError):
            scheduler.start_monitor_job(None, _params(window))

    def test_start_with_finished_job_id_rejected(self, scheduler, session_factory, window):
        scheduler.start_monitor_job("job-1", _params(window))
        scheduler.stop_monitor_job("job-1")
        with pytest.raises(MonitorJobExistsError) as exc:
            scheduler.start_monitor_job("job-1", _params(window))
        assert error_to_http(exc.value).status_code == 409
        db = session_factory()
        try:
            assert db.get(MonitorJob, "job-1").status == MONITOR_CANCELLED
        finally:
            db.close()

    def test_stopped_job_keeps_its_worker_until_tick_returns(self, scheduler, registry, window):
        release = threading.Event()
        registry.register_provider(BlockingProvider(release))
        for i in range(3):
            scheduler.start_monitor_job(f"job-{i}", _params(window, place_id=f"place-{i}"))
        futures = scheduler.dispatch()
        assert len(futures) == 2
        running = scheduler.in_flight()
        stopped_id = sorted(running)[0]

        try:
            assert scheduler.stop_monitor_job(stopped_id) is True
            assert scheduler.in_flight() == running
            assert scheduler.dispatch() == []
        finally:
            release.set()
        outcomes = {f.result(timeout=5) for f in futures}
        assert monitor_service.TICK_STALE in outcomes
        assert scheduler.in_flight() == set()
        assert len(scheduler.dispatch()) == 1
