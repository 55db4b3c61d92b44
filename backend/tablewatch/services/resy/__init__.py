"""Resy API client plus hit parsing shared by the Resy adapter and provider."""
from datetime import datetime, tzinfo
from typing import Any

from tablewatch.core.dates import local_to_utc, zone_or_default
from tablewatch.services.resy.client import ResyClient
from tablewatch.services.resy.config import ResyConfig

RESY_VENUE_BASE = "https://resy.com"
RESY_SLOT_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LOCATION_SLUG = "chicago-il"  # matches the default search box


def _normalize_venue_id(vid: Any) -> str | int | None:
    """Resy API may return id as scalar or as dict e.g. {"resy": 60029}."""
    if vid is None:
        return None
    if isinstance(vid, dict):
        return vid.get("resy") or vid.get("id")
    return vid


def build_resy_venue_url(venue_slug: str, location_slug: str, date_str: str, party_size: int) -> str:
    """Resy venue booking page. Format: /cities/{loc}/venues/{slug}?date=YYYY-MM-DD&seats=N."""
    loc = (location_slug or DEFAULT_LOCATION_SLUG).strip() or DEFAULT_LOCATION_SLUG
    slug = (venue_slug or "").strip()
    if not slug:
        return ""
    return f"{RESY_VENUE_BASE}/cities/{loc}/venues/{slug}?date={date_str}&seats={party_size}"


def venue_zone(hit: dict[str, Any], default: tzinfo) -> tzinfo:
    """Zone named in the hit (location.time_zone), else default."""
    location = hit.get("location") or {}
    name = location.get("time_zone") if isinstance(location, dict) else None
    return zone_or_default(name, default)


def slot_starts(hit: dict[str, Any], tz: tzinfo) -> list[datetime]:
    """Parse availability.slots[].date.start ("2026-02-18 20:30:00", wall clock in zone tz) into UTC datetimes."""
    out: list[datetime] = []
    for s in (hit.get("availability") or {}).get("slots") or []:
        date_obj = (s.get("date") if isinstance(s, dict) else None) or {}
        start = date_obj.get("start") if isinstance(date_obj, dict) else None
        if not start or not isinstance(start, str):
            continue
        try:
            out.append(local_to_utc(datetime.strptime(start.strip(), RESY_SLOT_FORMAT), tz))
        except ValueError:
            continue
    return out


def extract_venue(hit: dict[str, Any], *, date_str: str, party_size: int) -> dict[str, Any]:
    """Flatten a search hit to the fields adapters need (name, location, rating, cuisine, url)."""
    venue_obj = hit.get("venue") or {}
    name = (hit.get("name") or venue_obj.get("name") or "").strip()
    neighborhood = hit.get("neighborhood") or (hit.get("location") or {}).get("neighborhood") or ""
    out: dict[str, Any] = {"name": name, "neighborhood": neighborhood}
    vid = _normalize_venue_id(venue_obj.get("id") or hit.get("id"))
    if vid is not None:
        out["venue_id"] = vid
    rating = hit.get("rating") or venue_obj.get("rating")
    if isinstance(rating, dict) and isinstance(rating.get("average"), (int, float)):
        out["rating"] = round(float(rating["average"]), 2)
    cuisine = hit.get("cuisine") or venue_obj.get("cuisine")
    if isinstance(cuisine, list) and cuisine:
        out["cuisine"] = str(cuisine[0])
    elif isinstance(cuisine, str) and cuisine:
        out["cuisine"] = cuisine
    price = hit.get("price_range") or venue_obj.get("price_range")
    if isinstance(price, int) and price > 0:
        out["price_range"] = "$" * price
    # Prefer explicit URL from API, else build from url_slug + location
    resy_url = venue_obj.get("url") or hit.get("url")
    slug = hit.get("url_slug") or venue_obj.get("url_slug") or hit.get("slug")
    if isinstance(resy_url, str) and "resy.com" in resy_url:
        out["resy_url"] = resy_url.strip()
    elif isinstance(slug, str) and slug:
        loc_slug = (hit.get("location") or {}).get("url_slug") or DEFAULT_LOCATION_SLUG
        out["resy_url"] = build_resy_venue_url(slug, loc_slug, date_str, party_size)
    return out


__all__ = [
    "ResyClient",
    "ResyConfig",
    "build_resy_venue_url",
    "extract_venue",
    "slot_starts",
    "venue_zone",
]
