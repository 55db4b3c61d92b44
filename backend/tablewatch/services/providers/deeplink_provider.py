"""
Deeplink provider: always-enabled fallback. Suggests times around the request and links out to
Google Maps. It never checks inventory, so its slots are never verified, and booking through it
always hands the user off to an external page.
"""
from datetime import timedelta
from urllib.parse import quote_plus

from tablewatch.services.providers.types import (
    AvailabilityRequest,
    AvailabilitySlot,
    BookingRequest,
    ProviderResult,
)

SUGGESTED_OFFSETS_MINUTES = (-30, 0, 30, 60)
MAPS_SEARCH_URL = "https://www.google.com/maps/search/?api=1"
GOOGLE_SEARCH_URL = "https://www.google.com/search"


def maps_booking_url(place_id: str, restaurant_name: str | None = None) -> str:
    query = quote_plus(restaurant_name or place_id)
    return f"{MAPS_SEARCH_URL}&query={query}&query_place_id={place_id}"


def redirect_url(request: BookingRequest) -> str:
    """Maps pin when coordinates are known, else a web search for name and address."""
    if request.lat is not None and request.lng is not None:
        return f"{MAPS_SEARCH_URL}&query={request.lat},{request.lng}&query_place_id={request.place_id}"
    terms = " ".join(p for p in (request.restaurant_name, request.restaurant_address) if p)
    return f"{GOOGLE_SEARCH_URL}?q={quote_plus(terms)}"


class DeeplinkProvider:
    provider_id = "deeplink"
    verifies_inventory = False

    def is_enabled(self) -> bool:
        return True

    def get_availability(self, request: AvailabilityRequest) -> list[AvailabilitySlot]:
        url = maps_booking_url(request.place_id, request.restaurant_name)
        return [
            AvailabilitySlot(
                datetime=request.date_time + timedelta(minutes=offset),
                verified=False,
                provider=self.provider_id,
                booking_url=url,
                metadata={"suggested": True, "note": "Suggested time - availability not verified"},
            )
            for offset in SUGGESTED_OFFSETS_MINUTES
        ]

    def book(self, request: BookingRequest) -> ProviderResult:
        return ProviderResult(
            success=True,
            redirect_url=redirect_url(request),
            confirmation={"mode": "REDIRECT", "note": "Please complete booking on external platform"},
        )
