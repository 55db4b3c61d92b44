"""Resy availability provider. Finds the restaurant by name in a venue search; its real slots are verified."""
import logging
from datetime import tzinfo

from tablewatch.core.dates import local_days
from tablewatch.services.providers.base import fail_soft
from tablewatch.services.providers.types import (
    AvailabilityRequest,
    AvailabilitySlot,
    BookingRequest,
    ProviderResult,
)
from tablewatch.services.resy import ResyClient, extract_venue, slot_starts, venue_zone

logger = logging.getLogger(__name__)


def _same_venue(a: str, b: str) -> bool:
    return a.strip().lower() == b.strip().lower()


class ResyProvider:
    provider_id = "resy"
    verifies_inventory = True

    def __init__(self, client: ResyClient, time_zone: tzinfo) -> None:
        self._client = client
        self._zone = time_zone

    def is_enabled(self) -> bool:
        return self._client.is_configured()

    @fail_soft("resy")
    def get_availability(self, request: AvailabilityRequest) -> list[AvailabilitySlot]:
        """
        Resy searches one venue-local day at a time, so a window that crosses local midnight
        is searched day by day. Slot times come back as venue wall clock and are returned in UTC.
        """
        if not request.restaurant_name:
            return []
        slots: list[AvailabilitySlot] = []
        for day in local_days(request.date_time, request.window_end, self._zone):
            slots.extend(self._slots_for_day(request, day.isoformat()))
        return slots

    def _find_hit(self, name: str, day: str, party_size: int) -> tuple[dict | None, dict]:
        """The search hit whose venue name matches, with its flattened fields."""
        raw = self._client.search_with_availability(day, party_size, query=name)
        if raw.get("error"):
            logger.warning("Resy search failed for %s on %s: %s", name, day, raw.get("error"))
            return None, {}
        for hit in (raw.get("search") or {}).get("hits") or []:
            venue = extract_venue(hit, date_str=day, party_size=party_size)
            if _same_venue(venue["name"], name):
                return hit, venue
        return None, {}

    def _slots_for_day(self, request: AvailabilityRequest, day: str) -> list[AvailabilitySlot]:
        hit, venue = self._find_hit(request.restaurant_name, day, request.party_size)
        if hit is None:
            return []
        return [
            AvailabilitySlot(
                datetime=start,
                verified=True,
                provider=self.provider_id,
                booking_url=venue.get("resy_url"),
                metadata={"venue_id": venue.get("venue_id")},
            )
            for start in slot_starts(hit, venue_zone(hit, self._zone))
        ]

    def book(self, request: BookingRequest) -> ProviderResult:
        """Resy bookings finish on resy.com: hand off to the venue page for that day and party size."""
        if not self.is_enabled():
            return ProviderResult(success=False, error="Resy provider not configured")
        day = request.date_time.astimezone(self._zone).date().isoformat()
        try:
            hit, venue = self._find_hit(request.restaurant_name, day, request.party_size)
        except Exception as e:
            logger.warning("Resy booking lookup failed for %s: %s", request.restaurant_name, e, exc_info=True)
            return ProviderResult(success=False, error="Resy search failed")
        if hit is None or not venue.get("resy_url"):
            return ProviderResult(success=False, error=f"{request.restaurant_name} not found on Resy")
        return ProviderResult(
            success=True,
            redirect_url=venue["resy_url"],
            confirmation={"mode": "REDIRECT", "venue_id": venue.get("venue_id")},
        )
