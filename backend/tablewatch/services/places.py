"""
Restaurant detail lookup by Google place id (Place Details API).
Used by the monitor tick to get the name/address that providers and bookings need.
"""
import logging
from dataclasses import dataclass

import httpx

from tablewatch.core.errors import PlaceLookupError

logger = logging.getLogger(__name__)

PLACE_DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"
DETAIL_FIELDS = "place_id,name,formatted_address,geometry,website,formatted_phone_number,url"


@dataclass(frozen=True)
class PlaceDetails:
    place_id: str
    name: str
    address: str | None = None
    lat: float | None = None
    lng: float | None = None
    website: str | None = None
    phone: str | None = None
    google_maps_url: str | None = None


def _parse_details(place_id: str, result: dict) -> PlaceDetails:
    location = (result.get("geometry") or {}).get("location") or {}
    name = (result.get("name") or "").strip()
    if not name:
        raise PlaceLookupError(f"Place {place_id} has no name")
    return PlaceDetails(
        place_id=result.get("place_id") or place_id,
        name=name,
        address=result.get("formatted_address"),
        lat=location.get("lat"),
        lng=location.get("lng"),
        website=result.get("website"),
        phone=result.get("formatted_phone_number"),
        google_maps_url=result.get("url"),
    )


class GooglePlacesClient:
    def __init__(self, api_key: str, *, timeout: float = 10.0) -> None:
        self._api_key = (api_key or "").strip()
        self._timeout = timeout

    def get_place_details(self, place_id: str) -> PlaceDetails:
        """Fetch details for one place. Raises PlaceLookupError on any failure."""
        if not self._api_key:
            raise PlaceLookupError("Google Maps API key not configured. Add GOOGLE_MAPS_API_KEY to .env.")
        params = {"place_id": place_id, "fields": DETAIL_FIELDS, "key": self._api_key}
        try:
            with httpx.Client(timeout=self._timeout) as client:
                resp = client.get(PLACE_DETAILS_URL, params=params)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PlaceLookupError(f"Place details request failed for {place_id}: {e}") from e
        status = data.get("status")
        if status != "OK":
            raise PlaceLookupError(f"Google Places API error for {place_id}: {status}")
        return _parse_details(place_id, data.get("result") or {})
