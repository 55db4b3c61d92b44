"""Google Reserve search adapter. Places text search; booking link opens the Maps listing."""
import logging
from typing import Any
from urllib.parse import quote_plus

import httpx

from tablewatch.services.providers.base import fail_soft
from tablewatch.services.providers.types import QueryIntent, RestaurantOption, make_option

logger = logging.getLogger(__name__)

PLACES_TEXT_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"
MAPS_SEARCH_URL = "https://www.google.com/maps/search/?api=1"


def _maps_link(name: str, place_id: str | None, location: str) -> str:
    link = f"{MAPS_SEARCH_URL}&query={quote_plus(f'{name} {location}')}"
    if place_id:
        link += f"&query_place_id={place_id}"
    return link


def _parse_places(data: dict[str, Any], intent: QueryIntent, platform: str) -> list[RestaurantOption]:
    status = data.get("status")
    if status not in ("OK", "ZERO_RESULTS"):
        logger.warning("Google Places text search status: %s", status)
        return []
    results: list[RestaurantOption] = []
    for p in data.get("results") or []:
        name = (p.get("name") or "").strip()
        if not name:
            continue
        place_id = p.get("place_id")
        price_level = p.get("price_level")
        results.append(
            make_option(
                name,
                platform,
                intent,
                restaurant_id=place_id,
                rating=float(p["rating"]) if isinstance(p.get("rating"), (int, float)) else None,
                cuisine=intent.cuisine,
                price_range="$" * price_level if isinstance(price_level, int) and price_level > 0 else None,
                booking_link=_maps_link(name, place_id, intent.location),
                description=p.get("formatted_address"),
            )
        )
    return results


class GoogleReserveAdapter:
    platform_name = "Google Reserve"

    def __init__(self, api_key: str, *, timeout: float = 10.0) -> None:
        self._api_key = (api_key or "").strip()
        self._timeout = timeout

    def is_enabled(self) -> bool:
        return bool(self._api_key)

    @fail_soft("Google Reserve")
    async def search_availability(self, intent: QueryIntent) -> list[RestaurantOption]:
        query = f"{intent.cuisine or 'restaurant'} in {intent.location}"
        params = {"query": query, "type": "restaurant", "key": self._api_key}
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.get(PLACES_TEXT_SEARCH_URL, params=params)
            resp.raise_for_status()
            data = resp.json()
        return _parse_places(data, intent, self.platform_name)
