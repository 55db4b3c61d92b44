"""Yelp search adapter. Yelp Fusion business search, filtered to businesses that take reservations."""
import logging
from datetime import tzinfo
from typing import Any

import httpx

from tablewatch.services.providers.base import fail_soft
from tablewatch.services.providers.types import QueryIntent, RestaurantOption, make_option

logger = logging.getLogger(__name__)

YELP_SEARCH_URL = "https://api.yelp.com/v3/businesses/search"
SEARCH_LIMIT = 20


def _parse_businesses(data: dict[str, Any], intent: QueryIntent, platform: str) -> list[RestaurantOption]:
    results: list[RestaurantOption] = []
    for b in data.get("businesses") or []:
        if not isinstance(b, dict) or b.get("is_closed"):
            continue
        name = (b.get("name") or "").strip()
        if not name:
            continue
        categories = [c.get("title") for c in b.get("categories") or [] if isinstance(c, dict) and c.get("title")]
        distance_m = b.get("distance")
        results.append(
            make_option(
                name,
                platform,
                intent,
                restaurant_id=b.get("id"),
                rating=float(b["rating"]) if isinstance(b.get("rating"), (int, float)) else None,
                cuisine=categories[0] if categories else None,
                vibe_tags=categories[1:] or None,
                price_range=b.get("price"),
                booking_link=b.get("url"),
                distance=round(distance_m / 1609.34, 2) if isinstance(distance_m, (int, float)) else None,
            )
        )
    return results


class YelpAdapter:
    platform_name = "Yelp"

    def __init__(self, api_key: str, time_zone: tzinfo, *, timeout: float = 10.0) -> None:
        self._api_key = (api_key or "").strip()
        self._zone = time_zone
        self._timeout = timeout

    def is_enabled(self) -> bool:
        return bool(self._api_key)

    @fail_soft("Yelp")
    async def search_availability(self, intent: QueryIntent) -> list[RestaurantOption]:
        local = intent.date_time.astimezone(self._zone)
        params = {
            "location": intent.location,
            "term": intent.cuisine or "restaurants",
            "categories": "restaurants",
            "attributes": "reservation",
            "reservation_date": local.date().isoformat(),
            "reservation_time": local.strftime("%H:%M"),
            "reservation_covers": intent.party_size,
            "limit": SEARCH_LIMIT,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.get(YELP_SEARCH_URL, params=params, headers=headers)
            resp.raise_for_status()
            data = resp.json()
        return _parse_businesses(data, intent, self.platform_name)
