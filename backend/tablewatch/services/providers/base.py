"""Protocols for search adapters and availability providers, plus the fail-soft wrapper."""
import functools
import inspect
import logging
from typing import Callable, Protocol, TypeVar

from tablewatch.services.providers.types import (
    AvailabilityRequest,
    AvailabilitySlot,
    BookingRequest,
    ProviderResult,
    QueryIntent,
    RestaurantOption,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReservationAdapter(Protocol):
    """Search side: one platform's immediate availability for an intent."""

    @property
    def platform_name(self) -> str:
        """Display name (e.g. 'OpenTable', 'Resy'); becomes RestaurantOption.platform."""
        ...

    def is_enabled(self) -> bool:
        """Cheap and side-effect free; evaluated on every search."""
        ...

    async def search_availability(self, intent: QueryIntent) -> list[RestaurantOption]:
        """Never raises: internal failures are logged and degrade to []."""
        ...


class AvailabilityProvider(Protocol):
    """Slots for one restaurant (monitoring, availability view) and booking. Called from worker threads."""

    @property
    def provider_id(self) -> str:
        """Unique id (e.g. 'resy', 'deeplink'); stored on bookings."""
        ...

    @property
    def verifies_inventory(self) -> bool:
        """True if this provider can ever return verified=True slots."""
        ...

    def is_enabled(self) -> bool:
        ...

    def get_availability(self, request: AvailabilityRequest) -> list[AvailabilitySlot]:
        """Never raises: internal failures are logged and degrade to []."""
        ...

    def book(self, request: BookingRequest) -> ProviderResult:
        """
        Take the reservation or hand it off (redirect_url). Never raises: a provider that
        cannot book returns success=False with an error message.
        """
        ...


def fail_soft(name: str) -> Callable:
    """
    Wrap an adapter/provider call so any exception is logged and turned into [].
    Works for both async and sync methods.
    """

    def decorator(fn: Callable[..., T]) -> Callable[..., T]:
        if inspect.iscoroutinefunction(fn):

            @functools.wraps(fn)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await fn(*args, **kwargs)
                except Exception as e:
                    logger.warning("[%s] adapter call failed: %s", name, e, exc_info=True)
                    return []

            return async_wrapper

        @functools.wraps(fn)
        def sync_wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except Exception as e:
                logger.warning("[%s] provider call failed: %s", name, e, exc_info=True)
                return []

        return sync_wrapper

    return decorator

