"""Fakes shared by the tests: canned adapters, providers and notifier."""
import asyncio
from datetime import datetime, timezone

from tablewatch.services.places import PlaceDetails
from tablewatch.services.providers.types import AvailabilitySlot, RestaurantOption


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class FakeAdapter:
    """Search adapter returning canned options, optionally after a delay or by raising."""

    def __init__(self, name, options=None, *, delay=0.0, error=None, enabled=True):
        self.platform_name = name
        self._options = options or []
        self._delay = delay
        self._error = error
        self._enabled = enabled
        self.calls = 0

    def is_enabled(self):
        return self._enabled

    async def search_availability(self, intent):
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return list(self._options)


class FakeProvider:
    """Availability provider returning canned slots."""

    def __init__(self, provider_id, slots=None, *, verifies_inventory=True, enabled=True, error=None):
        self.provider_id = provider_id
        self.verifies_inventory = verifies_inventory
        self._slots = slots or []
        self._enabled = enabled
        self._error = error
        self.requests = []

    def is_enabled(self):
        return self._enabled

    def get_availability(self, request):
        self.requests.append(request)
        if self._error is not None:
            raise self._error
        return list(self._slots)


class FakeNotifier:
    def __init__(self, error=None):
        self.calls = []
        self._error = error

    def notify_monitor_match(self, **kwargs):
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        return 1


def make_restaurant(name, platform, when, *, location="Lincoln Park", rating=None, cuisine="Sushi", **extra):
    return RestaurantOption(
        name=name,
        platform=platform,
        date_time=when,
        party_size=2,
        location=location,
        rating=rating,
        cuisine=cuisine,
        **extra,
    )


def verified_slot(when, provider="resy", **metadata) -> AvailabilitySlot:
    return AvailabilitySlot(
        datetime=when, verified=True, provider=provider, booking_url="https://resy.com/x", metadata=metadata
    )


def place_lookup(place_id: str) -> PlaceDetails:
    return PlaceDetails(place_id=place_id, name="Alinea", address="1723 N Halsted St, Chicago, IL")
