"""
Reservation platforms: search adapters (immediate search) and availability providers (monitoring).
Each fetches data in its own way but returns the same value types so aggregation and the
monitor scheduler stay platform-agnostic.
"""
from tablewatch.services.providers.base import AvailabilityProvider, ReservationAdapter, fail_soft
from tablewatch.services.providers.registry import ProviderRegistry, build_default_registry
from tablewatch.services.providers.types import (
    AvailabilityRequest,
    AvailabilitySlot,
    QueryIntent,
    RestaurantOption,
)

__all__ = [
    "AvailabilityProvider",
    "AvailabilityRequest",
    "AvailabilitySlot",
    "ProviderRegistry",
    "QueryIntent",
    "ReservationAdapter",
    "RestaurantOption",
    "build_default_registry",
    "fail_soft",
]
