"""
Search result cache: ranked results keyed by intent, stored in search_cache with a TTL.
Best-effort: read/write failures are logged and treated as a miss.
"""
import json
import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from tablewatch.core.dates import as_utc, utcnow
from tablewatch.models.search_cache import SearchCache
from tablewatch.services.providers.types import QueryIntent, RestaurantOption

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600


def cache_key(intent: QueryIntent) -> str:
    parts = [
        intent.location.strip().lower(),
        intent.date_time.isoformat(),
        str(intent.party_size),
        (intent.cuisine or "").strip().lower(),
        (intent.occasion or "").strip().lower(),
    ]
    return "search:" + ":".join(parts)


def get_cached_results(db: Session, intent: QueryIntent) -> list[RestaurantOption] | None:
    """Return cached results if present and not expired; None on miss, expiry or error."""
    try:
        row = db.query(SearchCache).filter(SearchCache.cache_key == cache_key(intent)).first()
        if not row:
            return None
        if as_utc(row.expires_at) <= utcnow():
            logger.debug("Search cache stale for %s", row.cache_key)
            return None
        return [RestaurantOption.from_dict(d) for d in json.loads(row.payload_json)]
    except Exception as e:
        logger.warning("Search cache read failed: %s", e)
        db.rollback()
        return None


def set_cached_results(
    db: Session,
    intent: QueryIntent,
    results: list[RestaurantOption],
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
) -> None:
    """Upsert results for this intent with a fresh expiry."""
    key = cache_key(intent)
    now = utcnow()
    payload = json.dumps([r.to_dict() for r in results])
    try:
        row = db.query(SearchCache).filter(SearchCache.cache_key == key).first()
        if row:
            row.payload_json = payload
            row.expires_at = now + timedelta(seconds=ttl_seconds)
            row.updated_at = now
        else:
            db.add(SearchCache(cache_key=key, payload_json=payload, expires_at=now + timedelta(seconds=ttl_seconds)))
        db.commit()
    except Exception as e:
        logger.warning("Search cache write failed: %s", e)
        db.rollback()


def prune_expired(db: Session) -> int:
    """Delete expired rows. Returns count removed."""
    deleted = (
        db.query(SearchCache)
        .filter(SearchCache.expires_at <= utcnow())
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted
