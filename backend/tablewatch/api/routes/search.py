"""Immediate multi-platform search. Intent parsing happens upstream; this takes a structured intent."""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tablewatch.api.deps import get_aggregator
from tablewatch.config import settings
from tablewatch.core.constants import MAX_PARTY_SIZE, MIN_PARTY_SIZE
from tablewatch.db.session import get_db
from tablewatch.services.aggregation import AggregationEngine
from tablewatch.services.providers.types import QueryIntent
from tablewatch.services.search_cache import get_cached_results, set_cached_results

router = APIRouter()
logger = logging.getLogger(__name__)


class SearchBody(BaseModel):
    party_size: int = Field(..., ge=MIN_PARTY_SIZE, le=MAX_PARTY_SIZE)
    date_time: datetime
    location: str = Field(..., min_length=1, max_length=255)
    cuisine: str | None = None
    occasion: str | None = None
    vibe: list[str] = Field(default_factory=list)

    def to_intent(self) -> QueryIntent:
        return QueryIntent(
            party_size=self.party_size,
            date_time=self.date_time,
            location=self.location.strip(),
            cuisine=(self.cuisine or "").strip() or None,
            occasion=self.occasion,
            vibe=tuple(self.vibe),
        )


@router.post("/search")
async def search(
    body: SearchBody,
    db: Session = Depends(get_db),
    engine: AggregationEngine = Depends(get_aggregator),
):
    """
    Ranked results (at most 5) across every enabled platform.
    An empty list means nothing matched or no platform could be reached.
    """
    intent = body.to_intent()
    cached = get_cached_results(db, intent)
    if cached is not None:
        return {"results": [o.to_dict() for o in cached], "cached": True}
    results = await engine.search_reservations(intent)
    set_cached_results(db, intent, results, ttl_seconds=settings.search_cache_ttl_seconds)
    return {"results": [o.to_dict() for o in results], "cached": False}
