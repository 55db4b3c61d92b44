"""
Yelp Reservations provider. Requires partner API access, so it is feature flagged
(YELP_RESERVATIONS_ENABLED and YELP_API_KEY). Openings returned by the API are real inventory.

Monitor jobs carry a Google place id, which Yelp does not understand: the Yelp business is
resolved first by a name search around the venue's coordinates (or its address), and the
match is cached per place id.
"""
import logging
import threading
from datetime import datetime, tzinfo

import httpx

from tablewatch.core.dates import local_to_utc
from tablewatch.services.providers.base import fail_soft
from tablewatch.services.providers.types import (
    AvailabilityRequest,
    AvailabilitySlot,
    BookingRequest,
    ProviderResult,
)

logger = logging.getLogger(__name__)

YELP_BUSINESS_SEARCH_URL = "https://api.yelp.com/v3/businesses/search"
YELP_OPENINGS_URL = "https://api.yelp.com/v3/bookings/{business_id}/openings"
MATCH_RADIUS_METERS = 250


def _normalize_name(name: str) -> str:
    return " ".join(name.lower().replace("&", "and").split())


class YelpReservationsProvider:
    provider_id = "yelp_reservations"
    verifies_inventory = True

    def __init__(self, api_key: str, time_zone: tzinfo, *, enabled: bool = False, timeout: float = 10.0) -> None:
        self._api_key = (api_key or "").strip()
        self._enabled = enabled and bool(self._api_key)
        self._zone = time_zone
        self._timeout = timeout
        self._business_ids: dict[str, str] = {}
        self._lock = threading.Lock()

    def is_enabled(self) -> bool:
        return self._enabled

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def resolve_business_id(self, request: AvailabilityRequest) -> str | None:
        """Yelp business id for the request's venue; None when it cannot be matched by name."""
        with self._lock:
            cached = self._business_ids.get(request.place_id)
        if cached:
            return cached
        if not request.restaurant_name:
            return None
        params: dict = {"term": request.restaurant_name, "categories": "restaurants", "limit": 5}
        if request.lat is not None and request.lng is not None:
            params.update(latitude=request.lat, longitude=request.lng, radius=MATCH_RADIUS_METERS)
        elif request.restaurant_address:
            params["location"] = request.restaurant_address
        else:
            logger.debug("Yelp match for %s skipped: no coordinates or address", request.place_id)
            return None
        with httpx.Client(timeout=self._timeout) as client:
            resp = client.get(YELP_BUSINESS_SEARCH_URL, params=params, headers=self._headers())
            resp.raise_for_status()
            data = resp.json()
        wanted = _normalize_name(request.restaurant_name)
        for b in data.get("businesses") or []:
            if isinstance(b, dict) and b.get("id") and _normalize_name(b.get("name") or "") == wanted:
                with self._lock:
                    self._business_ids[request.place_id] = b["id"]
                return b["id"]
        logger.info("No Yelp business named %r near place %s", request.restaurant_name, request.place_id)
        return None

    @fail_soft("yelp_reservations")
    def get_availability(self, request: AvailabilityRequest) -> list[AvailabilitySlot]:
        if not self.is_enabled():
            return []
        business_id = self.resolve_business_id(request)
        if business_id is None:
            return []
        # Yelp takes and returns the venue's wall-clock date and time
        local = request.date_time.astimezone(self._zone)
        params = {
            "covers": request.party_size,
            "date": local.date().isoformat(),
            "time": local.strftime("%H:%M"),
        }
        with httpx.Client(timeout=self._timeout) as client:
            resp = client.get(
                YELP_OPENINGS_URL.format(business_id=business_id), params=params, headers=self._headers()
            )
            resp.raise_for_status()
            data = resp.json()
        slots: list[AvailabilitySlot] = []
        for day in data.get("reservation_times") or []:
            date_str = day.get("date")
            for t in day.get("times") or []:
                try:
                    when = local_to_utc(datetime.fromisoformat(f"{date_str}T{t.get('time')}"), self._zone)
                except (TypeError, ValueError):
                    continue
                slots.append(
                    AvailabilitySlot(
                        datetime=when,
                        verified=True,
                        provider=self.provider_id,
                        booking_url=t.get("booking_url"),
                        metadata={"business_id": business_id, "credit_card_required": t.get("credit_card_required")},
                    )
                )
        return slots

    def book(self, request: BookingRequest) -> ProviderResult:
        if not self.is_enabled():
            return ProviderResult(success=False, error="Yelp Reservations provider not enabled")
        return ProviderResult(
            success=False, error="Yelp Reservations booking not available - requires partner access"
        )
