"""Shared route dependencies: caller identity and the process-wide objects built in the lifespan."""
from fastapi import Header, HTTPException, Request

from tablewatch.scheduler.monitor_job import MonitorScheduler
from tablewatch.services.aggregation import AggregationEngine
from tablewatch.services.providers.registry import ProviderRegistry


def get_user_id(x_user_id: str | None = Header(None, alias="X-User-Id")) -> str:
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    return user_id


def get_registry(request: Request) -> ProviderRegistry:
    return request.app.state.registry


def get_aggregator(request: Request) -> AggregationEngine:
    return request.app.state.aggregator


def get_scheduler(request: Request) -> MonitorScheduler:
    return request.app.state.monitor_scheduler
