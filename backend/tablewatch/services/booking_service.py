"""
Bookings: created from a confirmed search result (user finishes on the platform's page) or by a
monitor match (AWAITING_CONFIRMATION). Plus the per-restaurant availability view across providers.
"""
import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tablewatch.core.constants import (
    BOOKING_AWAITING_CONFIRMATION,
    BOOKING_CANCELLED,
    BOOKING_CONFIRMED,
    BOOKING_PENDING_EXTERNAL,
    MAX_PARTY_SIZE,
    MIN_PARTY_SIZE,
)
from tablewatch.core.dates import utcnow
from tablewatch.core.errors import BookingNotFoundError, BookingStateError, PersistenceError
from tablewatch.models.booking import Booking
from tablewatch.services.providers.base import AvailabilityProvider
from tablewatch.services.providers.registry import ProviderRegistry
from tablewatch.services.providers.types import (
    AvailabilityRequest,
    AvailabilitySlot,
    BookingRequest,
    RestaurantOption,
)

logger = logging.getLogger(__name__)


def _hand_off(option: RestaurantOption, place_id: str, fallback: AvailabilityProvider | None) -> tuple[str, str]:
    """(redirect url, provider id) from the fallback provider for a result without its own link."""
    if fallback is None:
        raise BookingStateError("This result has no booking link")
    result = fallback.book(
        BookingRequest(
            place_id=place_id,
            restaurant_name=option.name,
            date_time=option.date_time,
            party_size=option.party_size,
            restaurant_address=option.location or None,
        )
    )
    if not result.success or not result.redirect_url:
        raise BookingStateError(result.error or f"{fallback.provider_id} could not book {option.name}")
    return result.redirect_url, fallback.provider_id


def create_booking_from_option(
    db: Session,
    user_id: str,
    option: RestaurantOption,
    place_id: str | None = None,
    *,
    fallback: AvailabilityProvider | None = None,
) -> Booking:
    """
    The platform owns the actual reservation; we record it and hand back where to finish it.
    A result without a booking link is handed to the fallback provider (deeplink), whose
    redirect becomes the booking URL.
    """
    if not (MIN_PARTY_SIZE <= option.party_size <= MAX_PARTY_SIZE):
        raise BookingStateError(f"party_size must be between {MIN_PARTY_SIZE} and {MAX_PARTY_SIZE}")
    place_id = place_id or option.restaurant_id
    booking_url, provider_id = option.booking_link, None
    if not booking_url:
        booking_url, provider_id = _hand_off(option, place_id or option.name, fallback)
    booking = Booking(
        user_id=user_id,
        place_id=place_id,
        restaurant_name=option.name,
        restaurant_address=option.location,
        platform=option.platform,
        provider=provider_id,
        slot_datetime=option.date_time,
        party_size=option.party_size,
        status=BOOKING_PENDING_EXTERNAL,
        booking_url=booking_url,
    )
    try:
        db.add(booking)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("create booking for %s failed: %s", user_id, e, exc_info=True)
        raise PersistenceError("Could not save booking") from e
    db.refresh(booking)
    logger.info("Booking %s created for %s at %s (%s)", booking.id, user_id, option.name, option.platform)
    return booking


def list_bookings(db: Session, user_id: str, *, upcoming: bool = False) -> list[Booking]:
    """Newest first; upcoming=True keeps non-cancelled bookings whose slot is in the future (soonest first)."""
    q = db.query(Booking).filter(Booking.user_id == user_id)
    if upcoming:
        q = q.filter(Booking.slot_datetime >= utcnow(), Booking.status != BOOKING_CANCELLED)
        return q.order_by(Booking.slot_datetime.asc()).all()
    return q.order_by(Booking.created_at.desc(), Booking.id.desc()).all()


def get_booking(db: Session, user_id: str, booking_id: int) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id, Booking.user_id == user_id).first()
    if booking is None:
        raise BookingNotFoundError(booking_id)
    return booking


def _transition(
    db: Session, user_id: str, booking_id: int, allowed_from: tuple[str, ...], to_status: str, **extra
) -> Booking:
    booking = get_booking(db, user_id, booking_id)
    values = {Booking.status: to_status}
    for key, value in extra.items():
        values[getattr(Booking, key)] = value
    n = (
        db.query(Booking)
        .filter(Booking.id == booking_id, Booking.status.in_(allowed_from))
        .update(values, synchronize_session=False)
    )
    if n != 1:
        db.rollback()
        raise BookingStateError(f"Booking {booking_id} is {booking.status}; cannot move to {to_status}")
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Could not update booking {booking_id}") from e
    db.refresh(booking)
    logger.info("Booking %s -> %s", booking_id, to_status)
    return booking


def confirm_booking(db: Session, user_id: str, booking_id: int) -> Booking:
    """User confirms a monitor-found (or externally completed) booking."""
    return _transition(
        db, user_id, booking_id, (BOOKING_AWAITING_CONFIRMATION, BOOKING_PENDING_EXTERNAL), BOOKING_CONFIRMED
    )


def cancel_booking(db: Session, user_id: str, booking_id: int, reason: str | None = None) -> Booking:
    return _transition(
        db,
        user_id,
        booking_id,
        (BOOKING_AWAITING_CONFIRMATION, BOOKING_PENDING_EXTERNAL, BOOKING_CONFIRMED),
        BOOKING_CANCELLED,
        cancel_reason=reason,
    )


def get_availability(
    registry: ProviderRegistry,
    place_id: str,
    date_time: datetime,
    party_size: int,
    restaurant_name: str | None = None,
) -> list[AvailabilitySlot]:
    """Slots from every enabled provider (verified and suggested), sorted by time then verified first."""
    request = AvailabilityRequest(
        place_id=place_id, date_time=date_time, party_size=party_size, restaurant_name=restaurant_name
    )
    slots: list[AvailabilitySlot] = []
    for provider in registry.enabled_providers():
        try:
            slots.extend(provider.get_availability(request) or [])
        except Exception as e:
            logger.warning("[%s] availability failed: %s", provider.provider_id, e)
    slots.sort(key=lambda s: (s.datetime, not s.verified))
    return slots
