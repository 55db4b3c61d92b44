"""
Monitor dispatcher: APScheduler fires dispatch() every MONITOR_DISPATCH_SECONDS. Each dispatch
claims due jobs (lease written in the DB) and hands them to a bounded thread pool; a claimed job
re-enters the queue by itself when its tick writes next_run_at. Job 1 can keep ticking while
job 27 is slow.

Lifecycle: built once in the app lifespan, stored on app.state.monitor_scheduler, shutdown() on exit.
"""
import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from sqlalchemy.orm import Session

from tablewatch.config import Settings
from tablewatch.services import monitor_service
from tablewatch.services.monitor_service import MonitorParams
from tablewatch.services.places import PlaceDetails
from tablewatch.services.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


class MonitorScheduler:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        registry: ProviderRegistry,
        settings: Settings,
        *,
        place_lookup: Callable[[str], PlaceDetails] | None = None,
        notifier=None,
    ) -> None:
        self._session_factory = session_factory
        self._registry = registry
        self._settings = settings
        self._place_lookup = place_lookup
        self._notifier = notifier
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=settings.monitor_max_workers,
            thread_name_prefix="monitor_tick",
        )

    def start_monitor_job(self, job_id: str | None, params: MonitorParams):
        """Create and schedule a job. Raises the monitor_service errors for the route to map."""
        job_id = job_id or str(uuid.uuid4())
        db = self._session_factory()
        try:
            job = monitor_service.start_monitor_job(
                db,
                job_id,
                params,
                interval_seconds=self._settings.monitor_interval_seconds,
                max_ticks=self._settings.monitor_max_ticks,
            )
            return job.to_dict()
        finally:
            db.close()

    def stop_monitor_job(self, job_id: str) -> bool:
        """
        Idempotent. An in-flight tick sees the CANCELLED row and can no longer complete the job;
        its worker stays counted as busy until the tick returns.
        """
        db = self._session_factory()
        try:
            return monitor_service.stop_monitor_job(db, job_id)
        finally:
            db.close()

    def _forget(self, job_id: str) -> None:
        with self._lock:
            self._in_flight.discard(job_id)

    def in_flight(self) -> set[str]:
        with self._lock:
            return set(self._in_flight)

    def dispatch(self) -> list[Future]:
        """
        One dispatcher tick: lease due jobs (never more than free workers) and submit them.
        Does not wait for the ticks to finish.
        """
        with self._lock:
            free = self._settings.monitor_max_workers - len(self._in_flight)
        if free <= 0:
            logger.debug("Monitor dispatch: all %s workers busy", self._settings.monitor_max_workers)
            return []

        db = self._session_factory()
        try:
            claimed = monitor_service.claim_due_jobs(
                db, limit=free, lease_seconds=self._settings.monitor_lease_seconds
            )
        except Exception as e:
            logger.exception("Monitor dispatch: claim failed: %s", e)
            db.rollback()
            return []
        finally:
            db.close()

        futures: list[Future] = []
        for job_id, token in claimed:
            with self._lock:
                if job_id in self._in_flight:
                    continue
                self._in_flight.add(job_id)
            futures.append(self._executor.submit(self._run_tick, job_id, token))
        if futures:
            logger.debug("Monitor dispatch: submitted %s jobs", len(futures))
        return futures

    def _run_tick(self, job_id: str, lease_token: str) -> str:
        """Run one tick in its own session; the lease (not this thread) guards against overlap."""
        providers = self._registry.monitoring_providers(self._settings.provider_priority)
        db = self._session_factory()
        try:
            return monitor_service.check_monitor_job(
                db,
                job_id,
                lease_token,
                providers=providers,
                place_lookup=self._place_lookup,
                notifier=self._notifier,
            )
        except Exception as e:
            logger.exception("Monitor %s tick failed: %s", job_id, e)
            db.rollback()
            return monitor_service.TICK_FAILED
        finally:
            db.close()
            self._forget(job_id)

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)
        logger.info("Monitor scheduler stopped")
