"""Value types shared by every adapter and provider. Same shape regardless of OpenTable/Resy/Yelp/etc."""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from tablewatch.core.dates import as_utc, parse_iso


@dataclass(frozen=True)
class QueryIntent:
    """Structured search request produced by the (external) query parser. Never mutated."""

    party_size: int
    date_time: datetime
    location: str
    cuisine: str | None = None
    occasion: str | None = None  # e.g. "dinner", "brunch"
    vibe: tuple[str, ...] = ()  # e.g. ("romantic", "casual")

    def __post_init__(self):
        object.__setattr__(self, "date_time", as_utc(self.date_time))
        object.__setattr__(self, "vibe", tuple(self.vibe or ()))


@dataclass
class RestaurantOption:
    """One candidate returned by a search adapter. Ephemeral; may be merged with same-identity options."""

    name: str
    platform: str  # e.g. "OpenTable"; merged records read "OpenTable, Resy"
    date_time: datetime
    party_size: int
    location: str
    cuisine: str | None = None
    rating: float | None = None
    vibe_tags: list[str] | None = None
    booking_link: str | None = None
    restaurant_id: str | None = None  # platform-specific id
    distance: float | None = None
    price_range: str | None = None  # e.g. "$$"
    description: str | None = None

    def __post_init__(self):
        self.date_time = as_utc(self.date_time)

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["date_time"] = self.date_time.isoformat()
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RestaurantOption":
        payload = dict(data)
        payload["date_time"] = parse_iso(payload["date_time"])
        return cls(**payload)


def make_option(
    name: str,
    platform: str,
    intent: QueryIntent,
    *,
    date_time: datetime | None = None,
    location: str | None = None,
    **extra: Any,
) -> RestaurantOption:
    """Build a RestaurantOption defaulting time, party size and location from the intent."""
    return RestaurantOption(
        name=name,
        platform=platform,
        date_time=date_time or intent.date_time,
        party_size=intent.party_size,
        location=location or intent.location,
        **extra,
    )


@dataclass(frozen=True)
class AvailabilityRequest:
    place_id: str
    date_time: datetime
    party_size: int
    restaurant_name: str | None = None  # providers that search by name need this (Resy)
    window_end: datetime | None = None
    # From place lookup; lets providers with their own id space (Yelp) find the same venue
    restaurant_address: str | None = None
    lat: float | None = None
    lng: float | None = None

    def __post_init__(self):
        object.__setattr__(self, "date_time", as_utc(self.date_time))
        object.__setattr__(self, "window_end", as_utc(self.window_end))


@dataclass
class AvailabilitySlot:
    """
    One slot from a provider availability check.
    verified=True is a guarantee from the provider that real inventory was confirmed;
    only verified slots may trigger an automatic booking.
    """

    datetime: datetime
    verified: bool
    provider: str
    booking_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.datetime = as_utc(self.datetime)

    def to_dict(self) -> dict[str, Any]:
        return {
            "datetime": self.datetime.isoformat(),
            "verified": self.verified,
            "provider": self.provider,
            "booking_url": self.booking_url,
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class BookingRequest:
    """What a provider needs to take (or hand off) a reservation for one restaurant and time."""

    place_id: str
    restaurant_name: str
    date_time: datetime
    party_size: int
    restaurant_address: str | None = None
    lat: float | None = None
    lng: float | None = None

    def __post_init__(self):
        object.__setattr__(self, "date_time", as_utc(self.date_time))


@dataclass
class ProviderResult:
    """
    Outcome of a provider booking. redirect_url means the user finishes on an external page
    (the booking is PENDING_EXTERNAL until they confirm it).
    """

    success: bool
    redirect_url: str | None = None
    provider_booking_id: str | None = None
    confirmation: dict[str, Any] | None = None
    error: str | None = None
