"""Resy search adapter. One option per venue, at the offered slot nearest the requested time."""
import logging
from datetime import tzinfo

from tablewatch.services.providers.base import fail_soft
from tablewatch.services.providers.types import QueryIntent, RestaurantOption, make_option
from tablewatch.services.resy import ResyClient, extract_venue, slot_starts, venue_zone

logger = logging.getLogger(__name__)


class ResyAdapter:
    platform_name = "Resy"

    def __init__(self, client: ResyClient, time_zone: tzinfo) -> None:
        self._client = client
        self._zone = time_zone

    def is_enabled(self) -> bool:
        return self._client.is_configured()

    @fail_soft("Resy")
    async def search_availability(self, intent: QueryIntent) -> list[RestaurantOption]:
        # Resy filters by the venue-local day and clock time
        local = intent.date_time.astimezone(self._zone)
        day = local.date().isoformat()
        raw = await self._client.search_with_availability_async(
            day,
            intent.party_size,
            query=intent.cuisine or "",
            time_filter=local.strftime("%H:%M"),
        )
        if raw.get("error"):
            logger.warning("Resy search failed: %s", raw.get("error"))
            return []
        results: list[RestaurantOption] = []
        for hit in (raw.get("search") or {}).get("hits") or []:
            starts = slot_starts(hit, venue_zone(hit, self._zone))
            if not starts:
                continue
            venue = extract_venue(hit, date_str=day, party_size=intent.party_size)
            if not venue["name"]:
                continue
            nearest = min(starts, key=lambda s: abs((s - intent.date_time).total_seconds()))
            results.append(
                make_option(
                    venue["name"],
                    self.platform_name,
                    intent,
                    date_time=nearest,
                    location=venue.get("neighborhood") or intent.location,
                    restaurant_id=str(venue["venue_id"]) if venue.get("venue_id") is not None else None,
                    rating=venue.get("rating"),
                    cuisine=venue.get("cuisine"),
                    price_range=venue.get("price_range"),
                    booking_link=venue.get("resy_url"),
                )
            )
        return results
