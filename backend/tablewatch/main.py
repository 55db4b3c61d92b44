"""
FastAPI app entrypoint.

Search across reservation platforms, bookings, and background monitoring of a restaurant
until a verified table shows up.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code (push module reads APNs/Expo keys from os.environ)
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from tablewatch.api.routes import bookings, monitor, notifications, push, search
from tablewatch.config import settings
from tablewatch.core.constants import MONITOR_DISPATCH_JOB_ID, SEARCH_CACHE_PRUNE_JOB_ID
from tablewatch.db.session import SessionLocal
from tablewatch.scheduler.monitor_job import MonitorScheduler
from tablewatch.services.aggregation import AggregationEngine
from tablewatch.services.notify_service import MonitorNotifier
from tablewatch.services.places import GooglePlacesClient
from tablewatch.services.providers.registry import build_default_registry
from tablewatch.services.search_cache import prune_expired

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def run_search_cache_prune() -> None:
    db = SessionLocal()
    try:
        n = prune_expired(db)
        if n:
            logger.info("Pruned %s expired search cache rows", n)
    except Exception as e:
        logger.warning("Search cache prune failed: %s", e, exc_info=True)
        db.rollback()
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    registry = build_default_registry(settings)
    places = GooglePlacesClient(settings.google_maps_api_key)
    monitor_scheduler = MonitorScheduler(
        SessionLocal,
        registry,
        settings,
        place_lookup=places.get_place_details,
        notifier=MonitorNotifier(SessionLocal),
    )
    app.state.registry = registry
    app.state.aggregator = AggregationEngine(registry, adapter_timeout=settings.adapter_timeout_seconds)
    app.state.monitor_scheduler = monitor_scheduler

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        monitor_scheduler.dispatch,
        "interval",
        seconds=settings.monitor_dispatch_seconds,
        id=MONITOR_DISPATCH_JOB_ID,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(run_search_cache_prune, "interval", hours=1, id=SEARCH_CACHE_PRUNE_JOB_ID)
    scheduler.start()
    app.state.scheduler = scheduler
    logger.info(
        "Backend ready: adapters=%s providers=%s monitoring=%s",
        registry.list_adapters(),
        registry.list_providers(),
        [p.provider_id for p in registry.monitoring_providers(settings.provider_priority)],
    )
    yield
    scheduler.shutdown(wait=False)
    monitor_scheduler.shutdown()
    registry.close()


app = FastAPI(title="Tablewatch", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for a production frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:8081",
    "http://127.0.0.1:8081",
]
_cors_extra = settings.cors_origins or os.getenv("CORS_ORIGINS", "")
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(search.router, tags=["search"])
app.include_router(bookings.router, tags=["bookings"])
app.include_router(monitor.router, tags=["monitor"])
app.include_router(push.router, tags=["push"])
app.include_router(notifications.router, tags=["notifications"])


@app.get("/", include_in_schema=False)
def root():
    return {"message": "Tablewatch API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
