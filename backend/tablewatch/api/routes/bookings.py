"""Bookings and per-restaurant availability."""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tablewatch.api.deps import get_registry, get_user_id
from tablewatch.core.constants import MAX_PARTY_SIZE, MIN_PARTY_SIZE
from tablewatch.core.errors import TablewatchError, error_to_http
from tablewatch.db.session import get_db
from tablewatch.services import booking_service
from tablewatch.services.providers.registry import ProviderRegistry
from tablewatch.services.providers.types import RestaurantOption

router = APIRouter()
logger = logging.getLogger(__name__)


class OptionBody(BaseModel):
    name: str = Field(..., min_length=1)
    platform: str
    date_time: datetime
    party_size: int = Field(..., ge=MIN_PARTY_SIZE, le=MAX_PARTY_SIZE)
    location: str = ""
    booking_link: str | None = None
    restaurant_id: str | None = None


class CreateBookingBody(BaseModel):
    option: OptionBody
    place_id: str | None = None


class CancelBookingBody(BaseModel):
    reason: str | None = Field(None, max_length=500)


@router.get("/bookings/availability")
def availability(
    place_id: str = Query(..., min_length=1),
    date_time: datetime = Query(...),
    party_size: int = Query(2, ge=MIN_PARTY_SIZE, le=MAX_PARTY_SIZE),
    restaurant_name: str | None = Query(None),
    registry: ProviderRegistry = Depends(get_registry),
):
    """All providers' slots; verified=false slots are suggestions only."""
    slots = booking_service.get_availability(registry, place_id, date_time, party_size, restaurant_name)
    return {"slots": [s.to_dict() for s in slots], "verified_count": sum(1 for s in slots if s.verified)}


@router.post("/bookings")
def create_booking(
    body: CreateBookingBody,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
    registry: ProviderRegistry = Depends(get_registry),
):
    """
    Record the pick and return the URL where the user completes the reservation: the platform
    link, or the deeplink hand-off when the result has none.
    """
    option = RestaurantOption(**body.option.model_dump())
    try:
        booking = booking_service.create_booking_from_option(
            db, user_id, option, place_id=body.place_id, fallback=registry.booking_fallback()
        )
    except TablewatchError as e:
        raise error_to_http(e) from e
    return {"booking": booking.to_dict(), "redirect_url": booking.booking_url}


@router.get("/bookings")
def list_bookings(
    upcoming: bool = Query(False),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    rows = booking_service.list_bookings(db, user_id, upcoming=upcoming)
    return {"bookings": [b.to_dict() for b in rows]}


@router.post("/bookings/{booking_id}/confirm")
def confirm_booking(booking_id: int, db: Session = Depends(get_db), user_id: str = Depends(get_user_id)):
    try:
        booking = booking_service.confirm_booking(db, user_id, booking_id)
    except TablewatchError as e:
        raise error_to_http(e) from e
    return {"booking": booking.to_dict()}


@router.post("/bookings/{booking_id}/cancel")
def cancel_booking(
    booking_id: int,
    body: CancelBookingBody | None = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    try:
        booking = booking_service.cancel_booking(db, user_id, booking_id, reason=body.reason if body else None)
    except TablewatchError as e:
        raise error_to_http(e) from e
    return {"booking": booking.to_dict()}
