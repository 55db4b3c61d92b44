"""OpenTable search adapter. Uses the MultiSearchResults GQL endpoint."""
import logging
from dataclasses import dataclass
from datetime import tzinfo
from typing import Any
from zoneinfo import ZoneInfo

import httpx

from tablewatch.services.providers.base import fail_soft
from tablewatch.services.providers.types import QueryIntent, RestaurantOption, make_option

logger = logging.getLogger(__name__)

OT_BASE_URL = "https://www.opentable.com"
OT_GQL_URL = f"{OT_BASE_URL}/dapi/fe/gql?optype=query&opname=MultiSearchResults"
OT_OPERATION_HASH = "0c6adc98c9f25677df52a71550a3dfe63cd72c1c1167a04af83a4dd141f2f33c"

MAX_RESULTS = 30


@dataclass(frozen=True)
class SearchArea:
    """Map center and OpenTable metro the search runs in; times are sent as wall clock in time_zone."""

    latitude: float = 41.8781
    longitude: float = -87.6298
    metro_id: int = 3  # Chicago
    time_zone: tzinfo = ZoneInfo("America/Chicago")


def _build_body(intent: QueryIntent, area: SearchArea) -> dict:
    local = intent.date_time.astimezone(area.time_zone)
    variables = {
        "backwardMinutes": 30,
        "forwardMinutes": 30,
        "diningType": "ALL",
        "groupsRids": False,
        "isAffiliateSearch": False,
        "isRestrefRequest": False,
        "maxSearchResults": MAX_RESULTS,
        "skipSearchResults": 0,
        "sortBy": "WEB_CONVERSION",
        "withAnytimeAvailability": False,
        "withCarouselResults": False,
        "withFallbackToListingMode": False,
        "latitude": area.latitude,
        "longitude": area.longitude,
        "date": local.date().isoformat(),
        "time": local.strftime("%H:%M:%S"),
        "debug": False,
        "device": "desktop",
        "metroId": area.metro_id,
        "originalTerm": " ".join(p for p in (intent.cuisine, intent.location) if p),
        "partySize": intent.party_size,
        "tld": "com",
        "countryCode": "US",
    }
    return {
        "operationName": "MultiSearchResults",
        "variables": variables,
        "extensions": {"persistedQuery": {"version": 1, "sha256Hash": OT_OPERATION_HASH}},
    }


def _absolute_url(link: str) -> str:
    link = (link or "").strip()
    if not link or link.startswith("http"):
        return link
    return OT_BASE_URL + link if link.startswith("/") else f"{OT_BASE_URL}/{link}"


def _parse_response(data: dict[str, Any], intent: QueryIntent, platform: str) -> list[RestaurantOption]:
    """Parse OpenTable GQL response into options. Safe for any dict shape."""
    if not isinstance(data, dict):
        return []
    restaurants = (
        (data.get("data") or {})
        .get("restaurantSearchV2", {})
        .get("searchResults", {})
        .get("restaurants") or []
    )
    if not isinstance(restaurants, list):
        return []
    results: list[RestaurantOption] = []
    for r in restaurants:
        try:
            if not isinstance(r, dict):
                continue
            name = (r.get("name") or "").strip()
            if not name:
                continue
            rid = r.get("restaurantId")
            nb = r.get("neighborhood")
            neighborhood = (nb.get("name") or "").strip() if isinstance(nb, dict) else ""
            profile = (r.get("urls") or {}).get("profileLink") or {}
            price_band = r.get("priceBand") or {}
            cuisine = r.get("primaryCuisine") or {}
            ratings = ((r.get("statistics") or {}).get("reviews") or {}).get("ratings") or {}
            overall = (ratings.get("overall") or {}).get("rating")
            results.append(
                make_option(
                    name,
                    platform,
                    intent,
                    location=neighborhood or intent.location,
                    restaurant_id=str(rid) if rid is not None else None,
                    booking_link=_absolute_url(profile.get("link") or "") or None,
                    price_range=(price_band.get("name") or "").strip() or None if isinstance(price_band, dict) else None,
                    cuisine=(cuisine.get("name") or "").strip() or None if isinstance(cuisine, dict) else None,
                    rating=float(overall) if isinstance(overall, (int, float)) else None,
                    description=(r.get("description") or "").strip() or None,
                )
            )
        except Exception as e:
            logger.debug("OpenTable skip malformed restaurant: %s", e)
            continue
    return results


class OpenTableAdapter:
    platform_name = "OpenTable"

    def __init__(self, area: SearchArea | None = None, *, timeout: float = 15.0) -> None:
        self._area = area or SearchArea()
        self._timeout = timeout

    def is_enabled(self) -> bool:
        return True  # public endpoint, no credentials

    @fail_soft("OpenTable")
    async def search_availability(self, intent: QueryIntent) -> list[RestaurantOption]:
        body = _build_body(intent, self._area)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.post(OT_GQL_URL, json=body)
            resp.raise_for_status()
            data = resp.json()
        return _parse_response(data, intent, self.platform_name)
